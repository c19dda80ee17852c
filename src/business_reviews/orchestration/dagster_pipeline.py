"""
Dagster workflow keeping the review cache warm.
"""

import asyncio
import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from dagster import (
    AssetMaterialization,
    Config,
    DefaultScheduleStatus,
    Definitions,
    Field,
    InitResourceContext,
    MetadataValue,
    OpExecutionContext,
    RunRequest,
    get_dagster_logger,
    job,
    op,
    resource,
    schedule,
)

from .service import ReviewService

QUALITY_THRESHOLD = 0.8


class RefreshConfig(Config):
    """Configuration schema for a refresh run."""

    force_refresh: bool = True


def _load_config(path: str) -> Dict[str, Any]:
    config_file = Path(path)
    if not config_file.exists():
        return {}
    with open(config_file, "r") as f:
        return json.load(f)


@resource(config_schema={"config_path": Field(str, is_required=False, default_value="config/config.json")})
def review_service_resource(init_context: InitResourceContext) -> ReviewService:
    """Dagster resource for the review service."""
    config_path = init_context.resource_config.get("config_path", "config/config.json")
    return ReviewService(_load_config(config_path))


@op(required_resource_keys={"review_service"})
def refresh_reviews(context: OpExecutionContext, config: RefreshConfig) -> List[Dict[str, Any]]:
    """
    Resolve reviews through the service, attempting a live fetch when forced.

    Quota limits still apply: when the budget is spent the run degrades to
    cached or static data like any other caller.
    """
    logger = get_dagster_logger()
    service = context.resources.review_service

    reviews = asyncio.run(service.get_reviews(force_refresh=config.force_refresh))
    resolution = service.resolver.last_resolution or "unknown"

    context.log_event(
        AssetMaterialization(
            asset_key="business_reviews",
            metadata={
                "review_count": MetadataValue.int(len(reviews)),
                "resolution": MetadataValue.text(resolution),
                "force_refresh": MetadataValue.bool(config.force_refresh),
            },
        )
    )

    logger.info(f"Refresh resolved {len(reviews)} reviews via {resolution}")
    return [review.to_dict() for review in reviews]


@op
def validate_reviews(context: OpExecutionContext, reviews: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Validate the quality of the resolved batch.
    """
    logger = get_dagster_logger()

    validation_results = {
        "total_records": len(reviews),
        "missing_text": 0,
        "invalid_ratings": 0,
        "duplicate_ids": 0,
        "static_records": 0,
    }

    seen_ids = set()
    for review in reviews:
        if not (review.get("review") or "").strip():
            validation_results["missing_text"] += 1

        rating = review.get("rating")
        if not isinstance(rating, (int, float)) or not 1 <= rating <= 5:
            validation_results["invalid_ratings"] += 1

        review_id = review.get("id")
        if review_id in seen_ids:
            validation_results["duplicate_ids"] += 1
        else:
            seen_ids.add(review_id)

        if not review.get("isLive", True):
            validation_results["static_records"] += 1

    total_records = validation_results["total_records"]
    if total_records > 0:
        problems = (
            validation_results["missing_text"]
            + validation_results["invalid_ratings"]
            + validation_results["duplicate_ids"]
        )
        quality_score = 1 - problems / total_records
    else:
        quality_score = 0.0

    validation_results["quality_score"] = quality_score
    validation_results["passed"] = quality_score >= QUALITY_THRESHOLD

    context.log_event(
        AssetMaterialization(
            asset_key="review_validation",
            metadata={
                "quality_score": MetadataValue.float(quality_score),
                "total_records": MetadataValue.int(total_records),
                "missing_text": MetadataValue.int(validation_results["missing_text"]),
                "invalid_ratings": MetadataValue.int(validation_results["invalid_ratings"]),
                "duplicates": MetadataValue.int(validation_results["duplicate_ids"]),
            },
        )
    )

    if validation_results["passed"]:
        logger.info(f"Review validation passed. Quality score: {quality_score:.2f}")
    else:
        logger.warning(f"Review quality below threshold: {quality_score:.2f}")

    return validation_results


@op
def export_reviews_snapshot(
    context: OpExecutionContext, reviews: List[Dict[str, Any]], validation_results: Dict[str, Any]
) -> str:
    """
    Export the resolved batch for archiving.
    """
    logger = get_dagster_logger()

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    export_file = Path("exports") / f"reviews_snapshot_{timestamp}.json"
    export_file.parent.mkdir(parents=True, exist_ok=True)

    with open(export_file, "w", encoding="utf-8") as f:
        json.dump(
            {"validation": validation_results, "reviews": reviews}, f, indent=2, ensure_ascii=False
        )

    context.log_event(
        AssetMaterialization(
            asset_key="exported_reviews",
            metadata={
                "export_file": MetadataValue.text(str(export_file)),
                "exported_records": MetadataValue.int(len(reviews)),
            },
        )
    )

    logger.info(f"Exported {len(reviews)} reviews to {export_file}")
    return str(export_file)


@job(resource_defs={"review_service": review_service_resource})
def review_refresh_pipeline():
    """
    Refresh the cached reviews, validate them and archive a snapshot.
    """
    reviews = refresh_reviews()
    validation_results = validate_reviews(reviews)
    export_reviews_snapshot(reviews, validation_results)


@schedule(
    job=review_refresh_pipeline,
    cron_schedule="0 6 * * *",
    default_status=DefaultScheduleStatus.RUNNING,
)
def daily_review_refresh_schedule(context):
    """
    Daily forced refresh; one live fetch a day stays well inside the budget.
    """
    config_path = "config/config.json"
    return RunRequest(
        run_config={
            "ops": {"refresh_reviews": {"config": {"force_refresh": True}}},
            "resources": {"review_service": {"config": {"config_path": config_path}}},
        }
    )


defs = Definitions(jobs=[review_refresh_pipeline], schedules=[daily_review_refresh_schedule])

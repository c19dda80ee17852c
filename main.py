#!/usr/bin/env python3
"""
Business Reviews - Main Entry Point

Fetches third-party business reviews with caching, a call budget and
ordered fallback strategies, and serves them over HTTP.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from business_reviews import ReviewService
from business_reviews.web import ReviewsApp

if os.path.exists(".env"):
    load_dotenv(".env")

Path("logs").mkdir(exist_ok=True)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.FileHandler("logs/reviews.log"), logging.StreamHandler()],
)
logger = logging.getLogger(__name__)


def load_config(config_path: str = "config/config.json") -> Dict[str, Any]:
    """Load configuration from file."""
    config_file = Path(config_path)

    if config_file.exists():
        with open(config_file, "r") as f:
            return json.load(f)
    else:
        logger.warning(f"Config file {config_path} not found, using defaults")
        return {}


async def run_fetch(config: Dict[str, Any], force_refresh: bool, output: Optional[str]):
    """Resolve reviews once and print a summary."""
    service = ReviewService(config)

    reviews = await service.get_reviews(force_refresh=force_refresh)

    logger.info(f"Resolved {len(reviews)} reviews via {service.resolver.last_resolution}")
    for attempt in service.executor.last_attempts:
        logger.info(f"  {attempt.strategy}: {attempt.outcome} ({attempt.review_count} reviews)")

    if output:
        count = service.export_reviews(reviews, output)
        logger.info(f"Exported {count} reviews to {output}")

    return reviews


def run_server(config: Dict[str, Any], host: str = "0.0.0.0", port: int = 5000):
    """Run the HTTP API."""
    logger.info("Starting business reviews API")

    api = ReviewsApp(config)
    api.run(host=host, port=port, debug=config.get("flask", {}).get("DEBUG", False))


def show_status(config: Dict[str, Any]):
    """Show cache and quota status."""
    status = ReviewService(config).get_status()

    print("\n=== Business Reviews Status ===")
    print(f"Cached reviews: {status['cached_count']}")
    print(f"Cache valid: {status['is_valid']}")
    print(f"Last fetch: {status['last_fetch'] or 'never'}")

    counters = status["counters"]
    limits = status["limits"]
    print("\nFetch budget:")
    print(f"  Daily ({counters['daily']['date']}): {counters['daily']['count']}/{limits['daily']}")
    print(f"  Monthly ({counters['monthly']['month']}): {counters['monthly']['count']}/{limits['monthly']}")
    print(f"  Live fetch allowed: {status['can_fetch']}")


def clear_cache(config: Dict[str, Any]):
    """Remove the persisted review snapshot, keeping the quota counters."""
    service = ReviewService(config)

    def _drop_reviews(data):
        for key in ("timestamp", "reviews", "count", "source"):
            data.pop(key, None)

    service.clear_cache()
    if service.store.update(_drop_reviews):
        print(f"Cleared cached reviews in {service.store.path}")
    else:
        print("Could not clear cached reviews")


def create_sample_config():
    """Create a sample configuration file."""
    sample_config = {
        "business": {
            "place_id": "ChIJN1t_tDeuEmsRUsoyG83frY4",
            "url": "https://www.google.com/maps/place/?q=place_id:ChIJN1t_tDeuEmsRUsoyG83frY4",
            "alternate_urls": [],
            "language": "ar",
        },
        "cache": {"timeout_seconds": 86400},
        "storage": {"path": "data/reviews.json"},
        "quota": {"daily_limit": 10, "monthly_limit": 300},
        "strategies": {
            "order": ["google_places_api", "apify_dataset", "html_direct", "html_alternate_urls"],
            "api_timeout": 10,
            "apify_timeout": 120,
            "html_timeout": 15,
            "alternate_timeout": 20,
        },
        "rate_limit": {"max_requests": 10, "time_window": 60},
        "flask": {"DEBUG": False},
    }

    config_dir = Path("config")
    config_dir.mkdir(exist_ok=True)

    config_file = config_dir / "config.json"
    with open(config_file, "w") as f:
        json.dump(sample_config, f, indent=2)

    print(f"Sample configuration created at {config_file}")
    print("Set GOOGLE_MAPS_API_KEY and APIFY_TOKEN in the environment or a .env file.")


def main():
    """Main CLI interface."""
    parser = argparse.ArgumentParser(
        description="Business Reviews",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Resolve reviews (cache first)
  python3 main.py fetch

  # Force a live fetch and save the result
  python3 main.py fetch --force-refresh --output exports/reviews.json

  # Start the HTTP API
  python3 main.py serve --port 8080

  # Show cache and quota status
  python3 main.py status

  # Create sample configuration
  python3 main.py init-config
        """,
    )

    parser.add_argument(
        "--config",
        default="config/config.json",
        help="Path to configuration file (default: config/config.json)",
    )

    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    fetch_parser = subparsers.add_parser("fetch", help="Resolve reviews once")
    fetch_parser.add_argument(
        "--force-refresh", action="store_true", help="Skip a fresh cache and attempt a live fetch"
    )
    fetch_parser.add_argument("--output", help="Write the resolved reviews to this JSON file")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=5000, help="Port to bind to")

    subparsers.add_parser("status", help="Show cache and quota status")
    subparsers.add_parser("clear-cache", help="Drop the cached review snapshot")
    subparsers.add_parser("init-config", help="Create sample configuration file")

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    Path("data").mkdir(exist_ok=True)

    config = load_config(args.config)

    try:
        if args.command == "fetch":
            asyncio.run(run_fetch(config, args.force_refresh, args.output))

        elif args.command == "serve":
            run_server(config, args.host, args.port)

        elif args.command == "status":
            show_status(config)

        elif args.command == "clear-cache":
            clear_cache(config)

        elif args.command == "init-config":
            create_sample_config()

        else:
            parser.print_help()

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()

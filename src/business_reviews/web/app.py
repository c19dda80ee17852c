"""
HTTP API exposing the business reviews.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from ..orchestration.service import ReviewService
from .loop import BackgroundLoop

logger = logging.getLogger(__name__)

# Upper bound on how long a request thread waits for a resolution.
REQUEST_TIMEOUT_SECONDS = 180

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ReviewsApp:
    """
    Flask application serving reviews to the website front end.

    Endpoints:
    - ``GET /api/reviews?forceRefresh=bool``
    - ``GET /api/reviews/status``
    - ``POST /api/reviews/cache/clear``
    - ``GET /api/health``
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None, service: Optional[ReviewService] = None):
        """Initialize the application."""
        self.service = service or ReviewService(config)
        self.config = self.service.config
        self.loop = BackgroundLoop()
        self.loop.start()

        self.app = Flask(__name__)
        self.app.config.update(self.config.get("flask", {}))

        self._register_routes()

        logger.info("Reviews API initialized")

    def _register_routes(self):
        """Register Flask routes."""

        @self.app.route("/")
        def index():
            return jsonify(
                {
                    "message": "Business reviews API",
                    "endpoints": {
                        "reviews": "/api/reviews",
                        "status": "/api/reviews/status",
                        "clear_cache": "/api/reviews/cache/clear",
                        "health": "/api/health",
                    },
                }
            )

        @self.app.route("/api/reviews")
        def api_reviews():
            """Reviews with cache, quota and fallback applied."""
            force_refresh = request.args.get("forceRefresh", "").lower() in _TRUE_VALUES

            try:
                reviews = self.loop.run(
                    self.service.get_reviews(force_refresh=force_refresh), REQUEST_TIMEOUT_SECONDS
                )
                response = jsonify(
                    {
                        "success": True,
                        "data": [review.to_dict() for review in reviews],
                        "count": len(reviews),
                        "timestamp": datetime.now().isoformat(),
                    }
                )
                response.headers["Cache-Control"] = "public, max-age=300"
                return response
            except Exception as e:
                logger.error(f"Reviews API error: {e}")
                return (
                    jsonify(
                        {
                            "success": False,
                            "error": "Failed to fetch reviews",
                            "timestamp": datetime.now().isoformat(),
                        }
                    ),
                    500,
                )

        @self.app.route("/api/reviews/status")
        def api_status():
            try:
                return jsonify(self.service.get_status())
            except Exception as e:
                logger.error(f"Error getting status: {e}")
                return jsonify({"error": str(e)}), 500

        @self.app.route("/api/reviews/cache/clear", methods=["POST"])
        def api_clear_cache():
            self.service.clear_cache()
            return jsonify({"success": True, "timestamp": datetime.now().isoformat()})

        @self.app.route("/api/health")
        def api_health():
            """Health check endpoint."""
            try:
                health_status = self.loop.run(self.service.health_check(), REQUEST_TIMEOUT_SECONDS)
                return jsonify(health_status)
            except Exception as e:
                logger.error(f"Health check failed: {e}")
                return jsonify({"error": str(e)}), 500

    def run(self, host: str = "0.0.0.0", port: int = 5000, debug: bool = False):
        """Run the Flask application."""
        logger.info(f"Starting reviews API on {host}:{port}")
        try:
            self.app.run(host=host, port=port, debug=debug, threaded=True, use_reloader=False)
        finally:
            self.loop.stop()


def create_app(config: Optional[Dict[str, Any]] = None, service: Optional[ReviewService] = None) -> Flask:
    """Factory function to create Flask app."""
    return ReviewsApp(config, service).app

from __future__ import annotations

from typing import Optional

from flask import Flask, jsonify
from pydantic import ValidationError as RequestValidationError

from ..config import load_config
from ..errors import DrawCacheError, SyncInProgressError, UnknownLotteryError
from ..orchestrator import SyncOrchestrator
from ..service import build_orchestrator
from .routes.health import bp as health_bp
from .routes.lotteries import bp as lotteries_bp

EXTENSION_KEY = "drawcache"


def create_app(orchestrator: Optional[SyncOrchestrator] = None) -> Flask:
    app = Flask(__name__)
    if orchestrator is None:
        orchestrator = build_orchestrator(load_config())
    app.extensions[EXTENSION_KEY] = orchestrator

    app.register_blueprint(health_bp)
    app.register_blueprint(lotteries_bp, url_prefix="/lotteries")

    @app.errorhandler(UnknownLotteryError)
    def handle_unknown_lottery(exc: UnknownLotteryError):
        return jsonify({"error": str(exc)}), 404

    @app.errorhandler(SyncInProgressError)
    def handle_sync_in_progress(exc: SyncInProgressError):
        return jsonify({"error": str(exc)}), 409

    @app.errorhandler(RequestValidationError)
    def handle_bad_request(exc: RequestValidationError):
        details = exc.errors(include_url=False, include_context=False)
        return jsonify({"error": "Invalid request body", "details": details}), 400

    @app.errorhandler(DrawCacheError)
    def handle_drawcache_error(exc: DrawCacheError):
        app.logger.error("Request failed: %s", exc)
        return jsonify({"error": str(exc)}), 500

    return app

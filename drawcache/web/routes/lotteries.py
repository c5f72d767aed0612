from __future__ import annotations

import asyncio

from flask import Blueprint, current_app, jsonify, request

from ...orchestrator import SyncOrchestrator
from ..schemas import SyncRequest

bp = Blueprint("lotteries", __name__)


def _orchestrator() -> SyncOrchestrator:
    return current_app.extensions["drawcache"]


@bp.get("")
def list_lotteries():
    return jsonify(
        [
            {
                "id": v.id,
                "name": v.name,
                "numbers_count": v.numbers_count,
                "min_number": v.min_number,
                "max_number": v.max_number,
            }
            for v in _orchestrator().variants
        ]
    )


@bp.get("/<lottery_id>/status")
def lottery_status(lottery_id: str):
    status = asyncio.run(_orchestrator().status(lottery_id))
    return jsonify(status.to_dict())


@bp.post("/<lottery_id>/sync")
def sync_lottery(lottery_id: str):
    payload = SyncRequest.model_validate(request.get_json(silent=True) or {})
    report = asyncio.run(_orchestrator().sync(lottery_id, full=payload.full))
    status_code = 200 if report.success else 502
    return jsonify(report.to_dict()), status_code


@bp.get("/<lottery_id>/draws")
def lottery_draws(lottery_id: str):
    since = request.args.get("since", default=0, type=int)
    collection = _orchestrator().load(lottery_id)
    draws = collection.since(since) if since else collection.draws
    return jsonify(
        {
            "metadata": collection.metadata.to_document(),
            "draws": [draw.to_document() for draw in draws],
        }
    )

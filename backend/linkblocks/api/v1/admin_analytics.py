from datetime import timezone

from dateutil.parser import parse
from flask import Response, jsonify, request
from flask_jwt_extended import jwt_required

from linkblocks.application.analytics.reports import DateRange
from linkblocks.application.registry import current_registry
from linkblocks.domain.exceptions import ValidationError
from linkblocks.normalizers.click import normalize_block_analytics
from linkblocks.utils.decorators import roles_required
from . import v1_bp


def _parse_ts(name):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        value = parse(raw)
    except (ValueError, OverflowError) as exc:
        raise ValidationError(f"Invalid {name} timestamp", code="invalid_date") from exc
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _date_range():
    start, end = _parse_ts("start"), _parse_ts("end")
    if start is None and end is None:
        return None
    if start is None or end is None:
        raise ValidationError("start and end must be given together", code="invalid_date")
    if start > end:
        raise ValidationError("start must not be after end", code="invalid_date")
    return DateRange(start, end)


@v1_bp.route("/admin/blocks/<block_id>/analytics", methods=["GET"])
@jwt_required()
@roles_required("admin")
def block_analytics(block_id):
    registry = current_registry()
    days = request.args.get("days", 30, type=int)
    if days <= 0:
        raise ValidationError("days must be positive", code="invalid_days")

    block = registry.repository.get(block_id)
    analytics = registry.block_analytics(block.id, days=days)
    return jsonify(normalize_block_analytics(block, analytics))


@v1_bp.route("/admin/analytics/countries", methods=["GET"])
@jwt_required()
@roles_required("admin")
def clicks_by_country():
    rows = current_registry().clicks_by_country(
        _date_range(),
        limit=request.args.get("limit", 20, type=int),
    )
    return jsonify({"items": rows})


@v1_bp.route("/admin/analytics/export", methods=["GET"])
@jwt_required()
@roles_required("admin")
def export_clicks():
    body = current_registry().export_clicks_csv(_date_range())
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=clicks.csv"},
    )

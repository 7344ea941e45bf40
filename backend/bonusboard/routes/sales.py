# Overview: Flask API routes for the synced sales ledger, the sales pattern, and Dapic sync triggers.

from flask import Blueprint, current_app, g, jsonify, request

from bonusboard.config import STORE_IDS, is_all_stores
from bonusboard.decorators import require_role, require_user
from bonusboard.extensions import get_pattern_service, get_sync_service
from bonusboard.services import sales_store
from bonusboard.services.sync_service import MODE_ADDITIVE, MODE_REPLACE
from bonusboard.time_utils import local_today
from bonusboard.validation import ValidationError, check_date_range, to_bool, to_date, to_optional_date


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sync_response(results):
    payload = [result.to_dict() for result in results]
    return jsonify({
        "success": all(result.success for result in results),
        "total_synced": sum(result.sales_count for result in results),
        "results": payload,
    }), 200


@sales_bp.get("")
@require_user
def list_sales():
    user = g.current_user
    seller_name = request.args.get("seller_name")
    if user.role == "vendor":
        seller_name = user.full_name
    try:
        sales = sales_store.get_sales(
            store_id=request.args.get("store_id"),
            seller_name=seller_name,
            start=to_optional_date(request.args.get("start_date"), "start_date"),
            end=to_optional_date(request.args.get("end_date"), "end_date"),
        )
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    include_children = request.args.get("include_children", "false").lower() == "true"
    return jsonify([sale.to_dict(include_children=include_children) for sale in sales]), 200


@sales_bp.get("/pattern")
@require_user
def sales_pattern():
    patterns = get_pattern_service()
    store_id = request.args.get("store_id")
    month = request.args.get("month", local_today().month, type=int)
    if not 1 <= month <= 12:
        return jsonify({"error": "month must be between 1 and 12"}), 400

    response = {
        "month_pattern": patterns.get_month_pattern(month, store_id).to_dict(),
        "weekly_pattern": patterns.get_weekly_pattern(store_id),
    }
    try:
        start = to_optional_date(request.args.get("start_date"), "start_date")
        end = to_optional_date(request.args.get("end_date"), "end_date")
        current = to_optional_date(request.args.get("current_date"), "current_date") or local_today()
        if start and end:
            check_date_range(start, end, ("start_date", "end_date"))
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    if start and end:
        response["expected_progress"] = patterns.calculate_expected_progress(
            start, end, current, None if is_all_stores(store_id) else store_id
        ).to_dict()
    return jsonify(response), 200


@sales_bp.post("/sync")
@require_user
@require_role("admin", "manager")
def sync_period():
    data = request.get_json(silent=True) or {}
    try:
        start = to_date(data.get("start_date"), "start_date")
        end = to_date(data.get("end_date"), "end_date")
        check_date_range(start, end, ("start_date", "end_date"))
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    store_id = data.get("store_id")
    additive = to_bool(data.get("additive", False))
    service = get_sync_service()
    if is_all_stores(store_id):
        results = service.sync_all_stores(start, end, additive=additive)
    elif store_id in STORE_IDS:
        run = service.sync_store_additive if additive else service.sync_store
        results = [run(store_id, start, end)]
    else:
        return jsonify({"error": f"Unknown store_id: {store_id}"}), 400
    return _sync_response(results)


@sales_bp.post("/sync/full")
@require_user
@require_role("admin")
def sync_full():
    return _sync_response(get_sync_service().sync_full_history())


@sales_bp.post("/sync/month")
@require_user
@require_role("admin", "manager")
def sync_month():
    data = request.get_json(silent=True) or {}
    today = local_today()
    try:
        year = int(data.get("year") or today.year)
        month = int(data.get("month") or today.month)
    except (TypeError, ValueError):
        return jsonify({"error": "year and month must be integers"}), 400
    if not 1 <= month <= 12:
        return jsonify({"error": "month must be between 1 and 12"}), 400

    store_id = data.get("store_id")
    if is_all_stores(store_id):
        store_id = None
    elif store_id not in STORE_IDS:
        return jsonify({"error": f"Unknown store_id: {store_id}"}), 400
    results = get_sync_service().sync_month(year, month, store_id)
    return _sync_response(results)


@sales_bp.post("/sync/resync")
@require_user
@require_role("admin")
def resync():
    data = request.get_json(silent=True) or {}
    raw_dates = data.get("dates")
    if not isinstance(raw_dates, list) or not raw_dates:
        return jsonify({"error": "dates must be a non-empty list"}), 400
    try:
        dates = [to_date(value, "dates") for value in raw_dates]
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    stores = data.get("stores") or None
    if stores is not None:
        unknown = [store for store in stores if store not in STORE_IDS]
        if unknown:
            return jsonify({"error": f"Unknown stores: {', '.join(unknown)}"}), 400

    current_app.logger.info("Resync requested for %d date(s) by user %s", len(dates), g.current_user.id)
    return _sync_response(get_sync_service().resync(dates, stores))


@sales_bp.get("/sync/status")
@require_user
def sync_status():
    store_id = request.args.get("store_id")
    if not store_id or not request.args.get("start_date") or not request.args.get("end_date"):
        return jsonify({"error": "store_id, start_date and end_date are required"}), 400
    try:
        start = to_date(request.args.get("start_date"), "start_date")
        end = to_date(request.args.get("end_date"), "end_date")
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    mode = request.args.get("mode", MODE_REPLACE)
    if mode not in (MODE_REPLACE, MODE_ADDITIVE):
        return jsonify({"error": f"mode must be {MODE_REPLACE} or {MODE_ADDITIVE}"}), 400
    return jsonify({"status": get_sync_service().get_sync_status(store_id, start, end, mode)}), 200


@sales_bp.get("/sync/check")
@require_user
@require_role("admin")
def sync_check():
    days = request.args.get("days", 10, type=int)
    if days < 1:
        return jsonify({"error": "days must be >= 1"}), 400
    return jsonify(get_sync_service().check_discrepancies(days=days)), 200

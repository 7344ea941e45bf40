# Overview: Flask API routes for bonus summaries and the daily revenue comparison.

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from bonusboard.decorators import require_role, require_user
from bonusboard.services import bonus_service, sales_store
from bonusboard.time_utils import local_today


bonus_bp = Blueprint("bonus", __name__, url_prefix="/api")


@bonus_bp.get("/bonus/summary")
@require_user
@require_role("admin", "manager")
def bonus_summary():
    try:
        summary = bonus_service.bonus_summary(local_today(), store_id=request.args.get("store_id"))
    except SQLAlchemyError:
        current_app.logger.exception("Failed to compute bonus summary")
        return jsonify({"error": "Failed to compute bonus summary"}), 500
    return jsonify(summary), 200


@bonus_bp.get("/bonus/payment-summary")
@require_user
@require_role("admin", "finance")
def payment_summary():
    try:
        summary = bonus_service.payment_summary(local_today(), store_id=request.args.get("store_id"))
    except SQLAlchemyError:
        current_app.logger.exception("Failed to compute payment summary")
        return jsonify({"error": "Failed to compute payment summary"}), 500
    return jsonify(summary), 200


@bonus_bp.get("/financial/daily-revenue")
@require_user
@require_role("admin", "manager", "finance")
def daily_revenue():
    today = local_today()
    month = request.args.get("month", today.month, type=int)
    year = request.args.get("year", today.year, type=int)
    if not 1 <= month <= 12:
        return jsonify({"error": "month must be between 1 and 12"}), 400

    compare_raw = request.args.get("compare_years", "")
    try:
        compare_years = [int(part) for part in compare_raw.split(",") if part.strip()]
    except ValueError:
        return jsonify({"error": "compare_years must be a comma-separated list of years"}), 400

    results = sales_store.daily_revenue_comparison(
        store_id=request.args.get("store_id"),
        month=month,
        year=year,
        compare_years=compare_years,
    )
    return jsonify({"month": month, "years": results}), 200

# Overview: Flask API routes for sales goals; CRUD, dashboard, progress, and personal history.

from flask import Blueprint, current_app, g, jsonify, request

from bonusboard.config import is_all_stores
from bonusboard.decorators import require_role, require_user
from bonusboard.extensions import get_pattern_service
from bonusboard.services import goal_service, progress_service
from bonusboard.services.user_service import get_user_store_ids
from bonusboard.time_utils import local_today
from bonusboard.validation import ValidationError, to_bool, to_optional_date


goals_bp = Blueprint("goals", __name__, url_prefix="/api/goals")


def _overlap_response(exc: goal_service.GoalOverlapError):
    return jsonify({"error": str(exc), "overlapping_goals": exc.details()}), 409


@goals_bp.get("")
@require_user
def list_goals():
    user = g.current_user
    store_id = request.args.get("store_id")
    store_ids = None
    if user.role == "manager":
        allowed = get_user_store_ids(user)
        if is_all_stores(store_id):
            store_id = None
            store_ids = allowed
        elif store_id not in allowed:
            return jsonify({"error": "Store not assigned to this manager"}), 403
    elif is_all_stores(store_id):
        store_id = None

    is_active = request.args.get("is_active")
    try:
        goals = goal_service.list_goals(
            store_id=store_id,
            store_ids=store_ids,
            seller_id=request.args.get("seller_id", type=int),
            week_start=to_optional_date(request.args.get("week_start"), "week_start"),
            week_end=to_optional_date(request.args.get("week_end"), "week_end"),
            goal_type=request.args.get("type"),
            period=request.args.get("period"),
            is_active=to_bool(is_active) if is_active is not None else None,
        )
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400
    return jsonify([goal.to_dict() for goal in goals]), 200


@goals_bp.post("")
@require_user
@require_role("admin", "manager")
def create_goal():
    data = request.get_json(silent=True) or {}
    try:
        goal = goal_service.create_goal(data, created_by_id=g.current_user.id)
        return jsonify(goal.to_dict()), 201
    except goal_service.GoalOverlapError as exc:
        return _overlap_response(exc)
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400


@goals_bp.route("/<int:goal_id>", methods=["PUT", "PATCH"])
@require_user
@require_role("admin", "manager")
def update_goal(goal_id: int):
    data = request.get_json(silent=True) or {}
    try:
        goal = goal_service.update_goal(goal_id, data)
        return jsonify(goal.to_dict()), 200
    except goal_service.GoalNotFoundError as exc:
        return jsonify({"error": str(exc)}), 404
    except goal_service.GoalOverlapError as exc:
        return _overlap_response(exc)
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400


@goals_bp.delete("/<int:goal_id>")
@require_user
@require_role("admin", "manager")
def delete_goal(goal_id: int):
    try:
        goal_service.delete_goal(goal_id)
        return jsonify({"deleted": goal_id}), 200
    except goal_service.GoalNotFoundError as exc:
        return jsonify({"error": str(exc)}), 404


@goals_bp.get("/dashboard")
@require_user
def dashboard():
    try:
        results = progress_service.dashboard_goals(
            g.current_user,
            local_today(),
            get_pattern_service(),
            store_id=request.args.get("store_id"),
            team_bonus_stores=current_app.config["TEAM_BONUS_STORE_IDS"],
        )
    except Exception:
        current_app.logger.exception("Failed to build goals dashboard")
        return jsonify({"error": "Failed to build goals dashboard"}), 500
    return jsonify(results), 200


@goals_bp.get("/progress")
@require_user
def progress():
    try:
        result = progress_service.goal_progress(
            goal_id=request.args.get("goal_id", type=int),
            store_id=request.args.get("store_id"),
            start=to_optional_date(request.args.get("week_start"), "week_start"),
            end=to_optional_date(request.args.get("week_end"), "week_end"),
        )
        return jsonify(result), 200
    except goal_service.GoalNotFoundError as exc:
        return jsonify({"error": str(exc)}), 404
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400


@goals_bp.get("/personal")
@require_user
@require_role("vendor", "manager", "cashier")
def personal():
    result = progress_service.personal_goals(
        g.current_user,
        local_today(),
        team_bonus_stores=current_app.config["TEAM_BONUS_STORE_IDS"],
    )
    return jsonify(result), 200

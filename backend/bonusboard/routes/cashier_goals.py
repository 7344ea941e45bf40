# Overview: Flask API routes for cashier goals; CRUD, progress, and the cashier's own dashboard.

from flask import Blueprint, g, jsonify, request

from bonusboard.decorators import require_role, require_user
from bonusboard.services import goal_service, progress_service
from bonusboard.time_utils import local_today
from bonusboard.validation import ValidationError, to_bool


cashier_goals_bp = Blueprint("cashier_goals", __name__, url_prefix="/api")


@cashier_goals_bp.get("/cashier-goals")
@require_user
def list_cashier_goals():
    is_active = request.args.get("is_active")
    goals = goal_service.list_cashier_goals(
        store_id=request.args.get("store_id"),
        cashier_id=request.args.get("cashier_id", type=int),
        period_type=request.args.get("period_type"),
        is_active=to_bool(is_active) if is_active is not None else None,
    )
    return jsonify([goal.to_dict() for goal in goals]), 200


@cashier_goals_bp.post("/cashier-goals")
@require_user
@require_role("admin", "manager")
def create_cashier_goal():
    data = request.get_json(silent=True) or {}
    try:
        goal = goal_service.create_cashier_goal(data, created_by_id=g.current_user.id)
        return jsonify(goal.to_dict()), 201
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400


@cashier_goals_bp.route("/cashier-goals/<int:goal_id>", methods=["PUT", "PATCH"])
@require_user
@require_role("admin", "manager")
def update_cashier_goal(goal_id: int):
    data = request.get_json(silent=True) or {}
    try:
        goal = goal_service.update_cashier_goal(goal_id, data)
        return jsonify(goal.to_dict()), 200
    except goal_service.GoalNotFoundError as exc:
        return jsonify({"error": str(exc)}), 404
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400


@cashier_goals_bp.delete("/cashier-goals/<int:goal_id>")
@require_user
@require_role("admin", "manager")
def delete_cashier_goal(goal_id: int):
    try:
        goal_service.delete_cashier_goal(goal_id)
        return jsonify({"deleted": goal_id}), 200
    except goal_service.GoalNotFoundError as exc:
        return jsonify({"error": str(exc)}), 404


@cashier_goals_bp.get("/cashier-goals/progress")
@require_user
def cashier_goal_progress():
    try:
        results = progress_service.cashier_goal_progress(
            goal_id=request.args.get("goal_id", type=int),
            store_id=request.args.get("store_id"),
        )
        return jsonify(results), 200
    except goal_service.GoalNotFoundError as exc:
        return jsonify({"error": str(exc)}), 404


@cashier_goals_bp.get("/cashier/dashboard")
@require_user
@require_role("cashier")
def cashier_dashboard():
    return jsonify(progress_service.cashier_dashboard(g.current_user, local_today())), 200

# Overview: Service-layer operations for sales and cashier goals; encapsulates validation, overlap checks, and database work.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from bonusboard.extensions import db
from bonusboard.models import CashierGoal, SalesGoal, User, GOAL_PERIODS, GOAL_TYPES
from bonusboard.services.concurrency import commit_with_retry
from bonusboard.validation import (
    ConflictError,
    ValidationError,
    check_date_range,
    require_fields,
    to_bool,
    to_choice,
    to_date,
    to_number,
)


class GoalNotFoundError(LookupError):
    """Raised when a goal id does not exist."""


class GoalOverlapError(ConflictError):
    """Raised when a goal would overlap an active goal in the same slot."""

    def __init__(self, message: str, overlapping: Sequence[SalesGoal]):
        super().__init__(message)
        self.overlapping = list(overlapping)

    def details(self) -> list[dict]:
        return [
            {
                "id": goal.id,
                "week_start": goal.week_start.isoformat(),
                "week_end": goal.week_end.isoformat(),
            }
            for goal in self.overlapping
        ]


@dataclass(frozen=True)
class GoalSlot:
    """What a candidate goal competes for: one (store, type, period, seller) and a date range."""
    store_id: str
    type: str
    period: str
    seller_id: int | None
    week_start: date
    week_end: date


def ranges_overlap(start: date, end: date, other_start: date, other_end: date) -> bool:
    """Interval test: start inside other, end inside other, or other fully inside."""
    return (
        (other_start <= start <= other_end)
        or (other_start <= end <= other_end)
        or (start <= other_start and other_end <= end)
    )


def find_overlapping_goals(
    candidate: GoalSlot,
    existing: Iterable[SalesGoal],
    exclude_id: int | None = None,
) -> list[SalesGoal]:
    """
    Active goals from `existing` that clash with `candidate`.

    Individual goals only clash with the same seller; team goals only with
    other team goals (no seller).
    """
    clashes = []
    for goal in existing:
        if exclude_id is not None and goal.id == exclude_id:
            continue
        if not goal.is_active:
            continue
        if (goal.store_id, goal.type, goal.period) != (candidate.store_id, candidate.type, candidate.period):
            continue
        if candidate.type == "individual" and candidate.seller_id is not None:
            if goal.seller_id != candidate.seller_id:
                continue
        elif candidate.type == "team" and goal.seller_id is not None:
            continue
        if ranges_overlap(candidate.week_start, candidate.week_end, goal.week_start, goal.week_end):
            clashes.append(goal)
    return clashes


def check_overlapping_goals(candidate: GoalSlot, exclude_id: int | None = None) -> list[SalesGoal]:
    existing = (
        db.session.query(SalesGoal)
        .filter(
            SalesGoal.store_id == candidate.store_id,
            SalesGoal.type == candidate.type,
            SalesGoal.period == candidate.period,
            SalesGoal.is_active.is_(True),
        )
        .all()
    )
    return find_overlapping_goals(candidate, existing, exclude_id=exclude_id)


def _overlap_message(slot: GoalSlot) -> str:
    return (
        f"An active {slot.type} {slot.period} goal already overlaps the selected dates"
    )


def _validated_slot(data: dict) -> GoalSlot:
    goal_type = to_choice(data.get("type"), "type", GOAL_TYPES)
    period = to_choice(data.get("period") or "weekly", "period", GOAL_PERIODS)
    week_start = to_date(data.get("week_start"), "week_start")
    week_end = to_date(data.get("week_end"), "week_end")
    check_date_range(week_start, week_end)

    seller_id = data.get("seller_id")
    if goal_type == "individual":
        if seller_id in (None, ""):
            raise ValidationError("seller_id is required for individual goals")
        try:
            seller_id = int(seller_id)
        except (TypeError, ValueError):
            raise ValidationError("seller_id must be an integer")
        if db.session.get(User, seller_id) is None:
            raise ValidationError("seller_id does not reference a user")
    else:
        if seller_id not in (None, ""):
            raise ValidationError("team goals must not have a seller_id")
        seller_id = None

    store_id = str(data.get("store_id") or "").strip()
    if not store_id:
        raise ValidationError("store_id is required")

    return GoalSlot(
        store_id=store_id,
        type=goal_type,
        period=period,
        seller_id=seller_id,
        week_start=week_start,
        week_end=week_end,
    )


def get_goal(goal_id: int) -> SalesGoal:
    goal = db.session.get(SalesGoal, goal_id)
    if goal is None:
        raise GoalNotFoundError("Goal not found")
    return goal


def list_goals(
    *,
    store_id: str | None = None,
    store_ids: Iterable[str] | None = None,
    seller_id: int | None = None,
    week_start: date | None = None,
    week_end: date | None = None,
    goal_type: str | None = None,
    is_active: bool | None = None,
    period: str | None = None,
) -> list[SalesGoal]:
    """Goals matching every given filter; week_start/week_end bound the goal range from inside."""
    query = db.session.query(SalesGoal)
    if store_id:
        query = query.filter(SalesGoal.store_id == store_id)
    if store_ids is not None:
        query = query.filter(SalesGoal.store_id.in_(list(store_ids)))
    if seller_id is not None:
        query = query.filter(SalesGoal.seller_id == seller_id)
    if week_start is not None:
        query = query.filter(SalesGoal.week_start >= week_start)
    if week_end is not None:
        query = query.filter(SalesGoal.week_end <= week_end)
    if goal_type:
        query = query.filter(SalesGoal.type == goal_type)
    if period:
        query = query.filter(SalesGoal.period == period)
    if is_active is not None:
        query = query.filter(SalesGoal.is_active.is_(is_active))
    return query.order_by(SalesGoal.week_start.desc(), SalesGoal.id.desc()).all()


def create_goal(data: dict, created_by_id: int | None = None) -> SalesGoal:
    """
    Validate and insert a sales goal.

    Raises ValidationError for malformed input and GoalOverlapError when an
    active goal in the same slot overlaps the range.
    """
    require_fields(data, ("store_id", "type", "week_start", "week_end", "target_value"))
    slot = _validated_slot(data)
    target_value = to_number(data.get("target_value"), "target_value")

    overlapping = check_overlapping_goals(slot)
    if overlapping:
        raise GoalOverlapError(_overlap_message(slot), overlapping)

    goal = SalesGoal(
        store_id=slot.store_id,
        type=slot.type,
        period=slot.period,
        seller_id=slot.seller_id,
        week_start=slot.week_start,
        week_end=slot.week_end,
        target_value=target_value,
        is_active=to_bool(data.get("is_active", True)),
        created_by_id=created_by_id,
    )
    db.session.add(goal)
    commit_with_retry()
    return goal


_SLOT_FIELDS = ("store_id", "seller_id", "type", "period", "week_start", "week_end")


def update_goal(goal_id: int, data: dict) -> SalesGoal:
    """
    Patch a goal. The overlap check runs when a slot field or is_active
    changes and the goal stays active; it always excludes the goal being edited.
    """
    goal = get_goal(goal_id)

    merged = {
        "store_id": data.get("store_id") or goal.store_id,
        "seller_id": data["seller_id"] if "seller_id" in data else goal.seller_id,
        "type": data.get("type") or goal.type,
        "period": data.get("period") or goal.period,
        "week_start": data.get("week_start") or goal.week_start,
        "week_end": data.get("week_end") or goal.week_end,
    }
    slot = _validated_slot(merged)

    will_be_active = to_bool(data["is_active"]) if "is_active" in data else goal.is_active
    touches_slot = any(field in data for field in _SLOT_FIELDS) or "is_active" in data
    if will_be_active and touches_slot:
        overlapping = check_overlapping_goals(slot, exclude_id=goal.id)
        if overlapping:
            raise GoalOverlapError(_overlap_message(slot), overlapping)

    goal.store_id = slot.store_id
    goal.seller_id = slot.seller_id
    goal.type = slot.type
    goal.period = slot.period
    goal.week_start = slot.week_start
    goal.week_end = slot.week_end
    if "target_value" in data:
        goal.target_value = to_number(data["target_value"], "target_value")
    if "is_active" in data:
        goal.is_active = to_bool(data["is_active"])

    commit_with_retry()
    return goal


def delete_goal(goal_id: int) -> None:
    goal = get_goal(goal_id)
    db.session.delete(goal)
    commit_with_retry()


# ---------------------------------------------------------------- cashier goals


def _validated_cashier_fields(data: dict, *, partial: bool) -> dict:
    if not partial:
        require_fields(
            data,
            ("cashier_id", "store_id", "week_start", "week_end", "payment_methods", "target_percentage"),
        )

    patch: dict = {}
    if "cashier_id" in data:
        try:
            cashier_id = int(data["cashier_id"])
        except (TypeError, ValueError):
            raise ValidationError("cashier_id must be an integer")
        if db.session.get(User, cashier_id) is None:
            raise ValidationError("cashier_id does not reference a user")
        patch["cashier_id"] = cashier_id
    if "store_id" in data:
        store_id = str(data["store_id"] or "").strip()
        if not store_id:
            raise ValidationError("store_id cannot be blank")
        patch["store_id"] = store_id
    if "period_type" in data or not partial:
        patch["period_type"] = to_choice(data.get("period_type") or "weekly", "period_type", GOAL_PERIODS)
    if "week_start" in data:
        patch["week_start"] = to_date(data["week_start"], "week_start")
    if "week_end" in data:
        patch["week_end"] = to_date(data["week_end"], "week_end")
    if "payment_methods" in data:
        methods = data["payment_methods"]
        if not isinstance(methods, list) or not methods:
            raise ValidationError("payment_methods must be a non-empty list")
        cleaned = [str(m).strip().lower() for m in methods if str(m).strip()]
        if not cleaned:
            raise ValidationError("payment_methods must be a non-empty list")
        patch["payment_methods"] = cleaned
    if "target_percentage" in data:
        target = to_number(data["target_percentage"], "target_percentage")
        if target > 100:
            raise ValidationError("target_percentage must be <= 100")
        patch["target_percentage"] = target
    for field in ("bonus_percentage_achieved", "bonus_percentage_not_achieved"):
        if field in data:
            patch[field] = to_number(data[field], field)
    if "is_active" in data:
        patch["is_active"] = to_bool(data["is_active"])
    return patch


def get_cashier_goal(goal_id: int) -> CashierGoal:
    goal = db.session.get(CashierGoal, goal_id)
    if goal is None:
        raise GoalNotFoundError("Cashier goal not found")
    return goal


def list_cashier_goals(
    *,
    store_id: str | None = None,
    cashier_id: int | None = None,
    period_type: str | None = None,
    is_active: bool | None = None,
) -> list[CashierGoal]:
    query = db.session.query(CashierGoal)
    if store_id:
        query = query.filter(CashierGoal.store_id == store_id)
    if cashier_id is not None:
        query = query.filter(CashierGoal.cashier_id == cashier_id)
    if period_type:
        query = query.filter(CashierGoal.period_type == period_type)
    if is_active is not None:
        query = query.filter(CashierGoal.is_active.is_(is_active))
    return query.order_by(CashierGoal.week_start.desc(), CashierGoal.id.desc()).all()


def create_cashier_goal(data: dict, created_by_id: int | None = None) -> CashierGoal:
    patch = _validated_cashier_fields(data, partial=False)
    check_date_range(patch["week_start"], patch["week_end"])
    goal = CashierGoal(created_by_id=created_by_id, **patch)
    db.session.add(goal)
    commit_with_retry()
    return goal


def update_cashier_goal(goal_id: int, data: dict) -> CashierGoal:
    goal = get_cashier_goal(goal_id)
    patch = _validated_cashier_fields(data, partial=True)
    check_date_range(patch.get("week_start", goal.week_start), patch.get("week_end", goal.week_end))
    for key, value in patch.items():
        setattr(goal, key, value)
    commit_with_retry()
    return goal


def delete_cashier_goal(goal_id: int) -> None:
    goal = get_cashier_goal(goal_id)
    db.session.delete(goal)
    commit_with_retry()

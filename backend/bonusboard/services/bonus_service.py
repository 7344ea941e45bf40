# Overview: Service-layer bonus computations; custom cent rounding, cashier goal results, and the bonus/payment summaries.

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date

from bonusboard.config import MANAGER_TEAM_OVERRIDE_RATE, STORE_IDS, STORE_NAMES, is_all_stores
from bonusboard.extensions import db
from bonusboard.models import CashierGoal, SalesGoal, User
from bonusboard.services import sales_store
from bonusboard.services.user_service import active_users_by_id
from bonusboard.time_utils import month_bounds, monday_week_bounds, payment_monday, previous_sunday_week

ROLE_VENDOR = "vendor"
ROLE_MANAGER = "manager"
ROLE_CASHIER = "cashier"


def custom_round(value: float) -> float:
    """
    Round to cents, going up only when the pending fraction is strictly above half a cent.

    custom_round(1.005) == 1.0 and custom_round(1.006) == 1.01.
    """
    shifted = value * 100
    floored = math.floor(shifted)
    if shifted - floored > 0.5:
        return (floored + 1) / 100
    return floored / 100


def percentage_of(value: float, target: float) -> float:
    return value / target * 100 if target > 0 else 0.0


@dataclass
class SellerGoalOutcome:
    total_sales: float
    target_value: float
    percentage: float
    is_goal_met: bool
    bonus_percentage: float
    bonus_value: float


def seller_goal_outcome(goal: SalesGoal, seller: User) -> SellerGoalOutcome:
    """Seller-scoped sales, goal-met flag, and the seller's own rate applied to those sales."""
    total = sales_store.sum_sales(
        store_id=goal.store_id,
        seller_name=seller.full_name,
        start=goal.week_start,
        end=goal.week_end,
    )
    return _outcome(total, float(goal.target_value or 0), seller)


def _outcome(total: float, target: float, user: User) -> SellerGoalOutcome:
    percentage = percentage_of(total, target)
    met = percentage >= 100
    rate = float((user.bonus_percentage_achieved if met else user.bonus_percentage_not_achieved) or 0)
    return SellerGoalOutcome(
        total_sales=total,
        target_value=target,
        percentage=percentage,
        is_goal_met=met,
        bonus_percentage=rate,
        bonus_value=custom_round(rate / 100 * total),
    )


def team_override(sales: float) -> float:
    """Manager's cut of a vendor's sales when that vendor met their goal."""
    return custom_round(MANAGER_TEAM_OVERRIDE_RATE / 100 * sales)


def cashier_goal_result(goal: CashierGoal) -> dict:
    """
    Share of store sales settled through the goal's payment methods.

    Targeted sales come from sale receipts (gross value), so split
    payments are attributed per method.
    """
    total_store_sales = sales_store.sum_sales(store_id=goal.store_id, start=goal.week_start, end=goal.week_end)
    methods = list(goal.payment_methods or [])
    receipt_totals = sales_store.get_receipts_by_payment_method(
        goal.store_id, goal.week_start, goal.week_end, methods
    )
    target_method_sales = sum(r["total_gross"] for r in receipt_totals)

    achieved_pct = percentage_of(target_method_sales, total_store_sales)
    target_pct = float(goal.target_percentage or 0)
    met = achieved_pct >= target_pct
    rate = float((goal.bonus_percentage_achieved if met else goal.bonus_percentage_not_achieved) or 0)
    return {
        "goal_id": goal.id,
        "cashier_id": goal.cashier_id,
        "store_id": goal.store_id,
        "period_type": goal.period_type,
        "week_start": goal.week_start.isoformat(),
        "week_end": goal.week_end.isoformat(),
        "payment_methods": methods,
        "target_percentage": target_pct,
        "percentage_achieved": round(achieved_pct, 2),
        "is_goal_met": met,
        "total_store_sales": total_store_sales,
        "target_method_sales": target_method_sales,
        "receipt_totals": receipt_totals,
        "bonus_percentage": rate,
        "bonus_value": custom_round(rate / 100 * target_method_sales),
    }


def _store_matches(goal_store: str, store_id: str | None) -> bool:
    return is_all_stores(store_id) or goal_store == store_id


def _overlaps(goal, start: date, end: date) -> bool:
    return goal.week_start <= end and goal.week_end >= start


def _manager_team_bonus(goal: SalesGoal, manager: User, all_goals: list[SalesGoal], users: dict[int, User]) -> float:
    """Override for vendors in the manager's store with an individual goal over the same range."""
    bonus = 0.0
    for other in all_goals:
        if other.type != "individual" or other.seller_id in (None, manager.id):
            continue
        if other.store_id != goal.store_id:
            continue
        if (other.week_start, other.week_end) != (goal.week_start, goal.week_end):
            continue
        member = users.get(other.seller_id)
        if member is None or member.role != ROLE_VENDOR:
            continue
        outcome = seller_goal_outcome(other, member)
        if outcome.is_goal_met:
            bonus += team_override(outcome.total_sales)
    return bonus


def _period_bonus(
    period: str,
    start: date,
    end: date,
    store_id: str | None,
    goals: list[SalesGoal],
    cashier_goals: list[CashierGoal],
    users: dict[int, User],
) -> dict:
    vendor_bonus = 0.0
    manager_bonus = 0.0
    for goal in goals:
        if goal.period != period or not _store_matches(goal.store_id, store_id) or not _overlaps(goal, start, end):
            continue
        if goal.seller_id is None:
            continue
        seller = users.get(goal.seller_id)
        if seller is None:
            continue
        outcome = seller_goal_outcome(goal, seller)
        if seller.role == ROLE_VENDOR:
            vendor_bonus += outcome.bonus_value
        elif seller.role == ROLE_MANAGER:
            manager_bonus += outcome.bonus_value + _manager_team_bonus(goal, seller, goals, users)

    cashier_bonus = 0.0
    for cgoal in cashier_goals:
        if cgoal.period_type != period or not _store_matches(cgoal.store_id, store_id) or not _overlaps(cgoal, start, end):
            continue
        cashier_bonus += cashier_goal_result(cgoal)["bonus_value"]

    return {
        "vendor_bonus": custom_round(vendor_bonus),
        "manager_bonus": custom_round(manager_bonus),
        "cashier_bonus": custom_round(cashier_bonus),
        "total": custom_round(vendor_bonus + manager_bonus + cashier_bonus),
        "period": {"start": start.isoformat(), "end": end.isoformat()},
    }


def bonus_summary(today: date, store_id: str | None = None) -> dict:
    """
    Bonuses accrued so far in the current Monday-Sunday week and current month.

    Goals are included when their range overlaps the period.
    """
    goals = db.session.query(SalesGoal).filter(SalesGoal.is_active.is_(True)).all()
    cashier_goals = db.session.query(CashierGoal).filter(CashierGoal.is_active.is_(True)).all()
    users = active_users_by_id()

    week_start, week_end = monday_week_bounds(today)
    month_start, month_end = month_bounds(today)
    return {
        "weekly": _period_bonus("weekly", week_start, week_end, store_id, goals, cashier_goals, users),
        "monthly": _period_bonus("monthly", month_start, month_end, store_id, goals, cashier_goals, users),
    }


def _detail(user: User, goal: SalesGoal, outcome: SellerGoalOutcome, goal_type: str) -> dict:
    return {
        "id": user.id,
        "name": user.full_name,
        "role": user.role,
        "store_id": goal.store_id,
        "store_name": STORE_NAMES.get(goal.store_id, goal.store_id),
        "target_value": outcome.target_value,
        "actual_sales": custom_round(outcome.total_sales),
        "percentage": custom_round(outcome.percentage),
        "is_goal_met": outcome.is_goal_met,
        "bonus_percentage": outcome.bonus_percentage,
        "bonus_value": outcome.bonus_value,
        "goal_type": goal_type,
        "manager_team_bonus": 0.0,
    }


def payment_summary(today: date, store_id: str | None = None) -> dict:
    """
    Bonuses to pay this Monday for the previous Sunday-Saturday week.

    Only goals whose range is exactly that week are considered.
    """
    prev_start, prev_end = previous_sunday_week(today)
    users = active_users_by_id()

    weekly_goals = [
        goal
        for goal in db.session.query(SalesGoal).filter(
            SalesGoal.is_active.is_(True),
            SalesGoal.period == "weekly",
            SalesGoal.week_start == prev_start,
            SalesGoal.week_end == prev_end,
        ).order_by(SalesGoal.id)
        if _store_matches(goal.store_id, store_id)
    ]

    details: list[dict] = []
    vendors_meeting_goal: list[tuple[str, float]] = []

    for goal in weekly_goals:
        if goal.type != "individual" or goal.seller_id is None:
            continue
        seller = users.get(goal.seller_id)
        if seller is None:
            continue
        outcome = seller_goal_outcome(goal, seller)
        if seller.role not in (ROLE_VENDOR, ROLE_MANAGER):
            outcome.bonus_value = 0.0
        elif seller.role == ROLE_VENDOR and outcome.is_goal_met:
            vendors_meeting_goal.append((goal.store_id, outcome.total_sales))
        details.append(_detail(seller, goal, outcome, "individual"))

    for detail in details:
        if detail["role"] != ROLE_MANAGER:
            continue
        override = sum(team_override(sales) for store, sales in vendors_meeting_goal if store == detail["store_id"])
        detail["manager_team_bonus"] = override
        detail["bonus_value"] = custom_round(detail["bonus_value"] + override)

    for goal in weekly_goals:
        if goal.type != "team" or goal.seller_id is not None:
            continue
        store_sales = sales_store.sum_sales(store_id=goal.store_id, start=goal.week_start, end=goal.week_end)
        for member in users.values():
            if member.store_id != goal.store_id or member.role not in (ROLE_VENDOR, ROLE_MANAGER):
                continue
            if any(d["id"] == member.id and d["store_id"] == goal.store_id for d in details):
                continue
            outcome = _outcome(store_sales, float(goal.target_value or 0), member)
            details.append(_detail(member, goal, outcome, "team"))

    cashier_details = []
    cashier_goals = db.session.query(CashierGoal).filter(
        CashierGoal.is_active.is_(True),
        CashierGoal.period_type == "weekly",
        CashierGoal.week_start == prev_start,
        CashierGoal.week_end == prev_end,
    ).order_by(CashierGoal.id)
    for cgoal in cashier_goals:
        if not _store_matches(cgoal.store_id, store_id):
            continue
        cashier = users.get(cgoal.cashier_id)
        if cashier is None:
            continue
        result = cashier_goal_result(cgoal)
        cashier_details.append({
            "id": cashier.id,
            "name": cashier.full_name,
            "role": ROLE_CASHIER,
            "store_id": cgoal.store_id,
            "store_name": STORE_NAMES.get(cgoal.store_id, cgoal.store_id),
            "payment_methods": result["payment_methods"],
            "target_percentage": result["target_percentage"],
            "actual_percentage": custom_round(result["percentage_achieved"]),
            "is_goal_met": result["is_goal_met"],
            "total_store_sales": custom_round(result["total_store_sales"]),
            "target_method_sales": custom_round(result["target_method_sales"]),
            "bonus_percentage": result["bonus_percentage"],
            "bonus_value": result["bonus_value"],
        })

    vendor_total = sum(d["bonus_value"] for d in details if d["role"] == ROLE_VENDOR)
    manager_total = sum(d["bonus_value"] for d in details if d["role"] == ROLE_MANAGER)
    cashier_total = sum(d["bonus_value"] for d in cashier_details)

    by_store = []
    for sid in STORE_IDS:
        store_details = [d for d in details if d["store_id"] == sid]
        store_cashiers = [d for d in cashier_details if d["store_id"] == sid]
        store_vendor = sum(d["bonus_value"] for d in store_details if d["role"] == ROLE_VENDOR)
        store_manager = sum(d["bonus_value"] for d in store_details if d["role"] == ROLE_MANAGER)
        store_cashier = sum(d["bonus_value"] for d in store_cashiers)
        by_store.append({
            "store_id": sid,
            "store_name": STORE_NAMES[sid],
            "vendor_total": custom_round(store_vendor),
            "manager_total": custom_round(store_manager),
            "cashier_total": custom_round(store_cashier),
            "total": custom_round(sum(d["bonus_value"] for d in store_details) + store_cashier),
        })

    return {
        "period": {
            "start": prev_start.isoformat(),
            "end": prev_end.isoformat(),
            "payment_date": payment_monday(today).isoformat(),
        },
        "sales_goals": details,
        "cashier_goals": cashier_details,
        "totals": {
            "vendor_total": custom_round(vendor_total),
            "manager_total": custom_round(manager_total),
            "cashier_total": custom_round(cashier_total),
            "grand_total": custom_round(vendor_total + manager_total + cashier_total),
        },
        "by_store": by_store,
    }

# Overview: Service-layer progress views over sales goals and cashier goals; per-goal progress, role dashboards, and personal history.

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable

from bonusboard.config import STORE_NAMES, is_all_stores
from bonusboard.extensions import db
from bonusboard.models import CashierGoal, SalesGoal, User
from bonusboard.services import sales_store
from bonusboard.services.bonus_service import cashier_goal_result, custom_round, percentage_of
from bonusboard.services.goal_service import GoalNotFoundError, get_cashier_goal, get_goal
from bonusboard.services.pattern_service import SalesPatternService, linear_progress
from bonusboard.services.user_service import bonus_rates, get_user_store_ids
from bonusboard.time_utils import inclusive_days
from bonusboard.validation import ValidationError

ALL_STORES_LABEL = "Todas as Lojas"
MANAGER_STORES_LABEL = "Suas Lojas"
PERSONAL_WINDOW_DAYS = 28


def _current_goals(today: date, query=None) -> list[SalesGoal]:
    query = query if query is not None else db.session.query(SalesGoal)
    return (
        query.filter(
            SalesGoal.is_active.is_(True),
            SalesGoal.week_start <= today,
            SalesGoal.week_end >= today,
        )
        .order_by(SalesGoal.week_start, SalesGoal.id)
        .all()
    )


def goal_sales(goal: SalesGoal, seller: User | None = None) -> float:
    """Store-wide sales for team goals; seller-scoped sales for individual goals."""
    if goal.type == "individual":
        seller = seller or goal.seller
        if seller is None:
            return 0.0
        return sales_store.sum_sales(
            store_id=goal.store_id, seller_name=seller.full_name, start=goal.week_start, end=goal.week_end
        )
    return sales_store.sum_sales(store_id=goal.store_id, start=goal.week_start, end=goal.week_end)


def _estimated_bonus(goal: SalesGoal, seller: User | None, current: float, percentage: float) -> float | None:
    if goal.type != "individual" or seller is None:
        return None
    achieved, not_achieved = bonus_rates(seller)
    if achieved is None and not_achieved is None:
        return None
    rate = (achieved if percentage >= 100 else not_achieved) or 0.0
    return custom_round(current * (rate / 100))


def calculate_goal_progress(
    goal: SalesGoal,
    today: date,
    patterns: SalesPatternService,
    seller: User | None = None,
) -> dict:
    """
    Progress of one goal as of `today`.

    expected_percentage comes from the sales pattern of the goal's store;
    estimated_bonus is only set for individual goals whose seller has bonus
    rates configured.
    """
    if goal.type == "individual" and seller is None:
        seller = goal.seller
    target = float(goal.target_value or 0)
    current = goal_sales(goal, seller)
    percentage = percentage_of(current, target)

    total_days = max(1, inclusive_days(goal.week_start, goal.week_end))
    elapsed_days = max(0, min(total_days, inclusive_days(goal.week_start, today)))
    expected = patterns.calculate_expected_progress(goal.week_start, goal.week_end, today, goal.store_id)
    achieved_rate, not_achieved_rate = bonus_rates(seller) if seller else (None, None)

    return {
        "id": goal.id,
        "store_id": goal.store_id,
        "type": goal.type,
        "period": goal.period,
        "seller_id": goal.seller_id,
        "seller_name": seller.full_name if seller else None,
        "week_start": goal.week_start.isoformat(),
        "week_end": goal.week_end.isoformat(),
        "target_value": target,
        "current_value": current,
        "percentage": percentage,
        "expected_percentage": expected.expected_percentage,
        "is_on_track": percentage >= expected.expected_percentage,
        "elapsed_days": elapsed_days,
        "total_days": total_days,
        "pattern_based": expected.pattern_based,
        "confidence": expected.confidence,
        "bonus_percentage_achieved": achieved_rate,
        "bonus_percentage_not_achieved": not_achieved_rate,
        "estimated_bonus": _estimated_bonus(goal, seller, current, percentage),
    }


def aggregate_goals(
    goals: list[SalesGoal],
    period: str,
    today: date,
    store_label: str,
    patterns: SalesPatternService,
) -> dict | None:
    """
    Merge the goals of one period into a single progress entry.

    The window runs from the earliest start to the latest end. Pattern
    estimation only applies when every merged goal belongs to one store;
    goals from several stores use the linear estimate.
    """
    if not goals:
        return None
    target = sum(float(goal.target_value or 0) for goal in goals)
    current = sum(goal_sales(goal) for goal in goals)
    start = min(goal.week_start for goal in goals)
    end = max(goal.week_end for goal in goals)
    total_days = max(1, inclusive_days(start, end))

    if today < start:
        elapsed_days, expected = 0, 0.0
    elif today > end:
        elapsed_days, expected = total_days, 100.0
    else:
        elapsed_days = inclusive_days(start, today)
        stores = {goal.store_id for goal in goals}
        if len(stores) == 1:
            expected = patterns.calculate_expected_progress(start, end, today, stores.pop()).expected_percentage
        else:
            expected = linear_progress(start, end, today, "Several stores - using linear estimate").expected_percentage

    percentage = percentage_of(current, target)
    return {
        "id": f"aggregated-{period}",
        "store_id": store_label,
        "type": "aggregated",
        "period": period,
        "seller_id": None,
        "seller_name": None,
        "week_start": start.isoformat(),
        "week_end": end.isoformat(),
        "target_value": target,
        "current_value": current,
        "percentage": percentage,
        "expected_percentage": expected,
        "is_on_track": percentage >= expected,
        "elapsed_days": elapsed_days,
        "total_days": total_days,
        "goals_count": len(goals),
        "estimated_bonus": None,
    }


def _aggregate_by_period(goals: list[SalesGoal], today: date, label: str, patterns: SalesPatternService) -> list[dict]:
    results = []
    for period in ("weekly", "monthly"):
        entry = aggregate_goals([g for g in goals if g.period == period], period, today, label, patterns)
        if entry is not None:
            results.append(entry)
    return results


def dashboard_goals(
    user: User,
    today: date,
    patterns: SalesPatternService,
    store_id: str | None = None,
    team_bonus_stores: Iterable[str] = (),
) -> list[dict]:
    """
    Current goals as the acting user should see them.

    Vendors get their own individual goals, or their store's team goals
    when the store pays team bonuses. Managers get weekly/monthly aggregates
    over their stores; everyone else aggregates one store or all stores.
    """
    query = db.session.query(SalesGoal)

    if user.role == "vendor":
        if user.store_id and user.store_id in set(team_bonus_stores):
            goals = _current_goals(today, query.filter(SalesGoal.store_id == user.store_id, SalesGoal.type == "team"))
            return [calculate_goal_progress(goal, today, patterns) for goal in goals]
        goals = _current_goals(today, query.filter(SalesGoal.seller_id == user.id, SalesGoal.type == "individual"))
        return [calculate_goal_progress(goal, today, patterns, seller=user) for goal in goals]

    if user.role == "manager":
        store_ids = get_user_store_ids(user)
        if not store_ids:
            return []
        goals = _current_goals(today, query.filter(SalesGoal.store_id.in_(store_ids)))
        label = MANAGER_STORES_LABEL if len(store_ids) > 1 else store_ids[0]
        return _aggregate_by_period(goals, today, label, patterns)

    if not is_all_stores(store_id):
        query = query.filter(SalesGoal.store_id == store_id)
        label = store_id
    else:
        label = ALL_STORES_LABEL
    return _aggregate_by_period(_current_goals(today, query), today, label, patterns)


def goal_progress(
    goal_id: int | None = None,
    store_id: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> dict:
    """Progress of a stored goal, or of an ad-hoc store/date window."""
    if goal_id is not None:
        goal = get_goal(goal_id)
        target = float(goal.target_value or 0)
        current = goal_sales(goal)
        return {
            "goal_id": goal.id,
            "store_id": goal.store_id,
            "week_start": goal.week_start.isoformat(),
            "week_end": goal.week_end.isoformat(),
            "target_value": target,
            "current_value": current,
            "percentage": percentage_of(current, target),
        }

    if not store_id or start is None or end is None:
        raise ValidationError("goal_id, or store_id with week_start and week_end, is required")
    goal = (
        db.session.query(SalesGoal)
        .filter(SalesGoal.store_id == store_id, SalesGoal.week_start == start, SalesGoal.week_end == end)
        .order_by(SalesGoal.id)
        .first()
    )
    if goal is None:
        raise GoalNotFoundError("Goal not found")
    target = float(goal.target_value or 0)
    current = sales_store.sum_sales(store_id=store_id, start=start, end=end)
    return {
        "goal_id": goal.id,
        "store_id": store_id,
        "week_start": start.isoformat(),
        "week_end": end.isoformat(),
        "target_value": target,
        "current_value": current,
        "percentage": percentage_of(current, target),
    }


def _personal_cashier_goals(user: User, today: date, window_start: date) -> dict:
    goals = (
        db.session.query(CashierGoal)
        .filter(
            CashierGoal.cashier_id == user.id,
            CashierGoal.is_active.is_(True),
            CashierGoal.week_end >= window_start,
            CashierGoal.week_start <= today,
        )
        .all()
    )
    entries = []
    for goal in goals:
        result = cashier_goal_result(goal)
        target_pct = result["target_percentage"]
        achieved_pct = result["percentage_achieved"]
        entries.append({
            "id": goal.id,
            "store_id": goal.store_id,
            "period": goal.period_type,
            "week_start": goal.week_start.isoformat(),
            "week_end": goal.week_end.isoformat(),
            "target_value": target_pct,
            "current_value": achieved_pct,
            "percentage": percentage_of(achieved_pct, target_pct),
            "achieved": result["is_goal_met"],
            "is_finished": goal.week_end < today,
            "bonus_percentage_achieved": goal.bonus_percentage_achieved,
            "bonus_percentage_not_achieved": goal.bonus_percentage_not_achieved,
            "applied_bonus_percentage": result["bonus_percentage"],
            "bonus_value": result["bonus_value"],
            "payment_methods": result["payment_methods"],
            "total_store_sales": result["total_store_sales"],
            "target_method_sales": result["target_method_sales"],
            "is_cashier_goal": True,
        })
    entries.sort(key=lambda e: e["week_start"], reverse=True)
    return {
        "goals": entries,
        "summary": {
            "total_goals": len(entries),
            "achieved_goals": sum(1 for e in entries if e["achieved"] and e["is_finished"]),
            "total_bonus": custom_round(sum(e["bonus_value"] for e in entries if e["is_finished"])),
            "total_sales": sum(e["target_method_sales"] for e in entries),
        },
        "is_cashier_data": True,
    }


def personal_goals(user: User, today: date, team_bonus_stores: Iterable[str] = ()) -> dict:
    """
    Goals touching the last four weeks for the acting user, newest first.

    Bonuses count toward the summary only once a goal's range has ended.
    """
    window_start = today - timedelta(days=PERSONAL_WINDOW_DAYS)
    if user.role == "cashier":
        payload = _personal_cashier_goals(user, today, window_start)
    else:
        query = db.session.query(SalesGoal).filter(
            SalesGoal.is_active.is_(True),
            SalesGoal.week_end >= window_start,
            SalesGoal.week_start <= today,
        )
        if user.role == "vendor" and user.store_id and user.store_id in set(team_bonus_stores):
            query = query.filter(SalesGoal.store_id == user.store_id, SalesGoal.type == "team")
        else:
            query = query.filter(SalesGoal.seller_id == user.id, SalesGoal.type == "individual")

        achieved_rate, not_achieved_rate = bonus_rates(user)
        entries = []
        for goal in query.all():
            target = float(goal.target_value or 0)
            current = goal_sales(goal, user)
            percentage = percentage_of(current, target)
            achieved = percentage >= 100
            rate = achieved_rate if achieved else not_achieved_rate
            entries.append({
                "id": goal.id,
                "store_id": goal.store_id,
                "store_name": STORE_NAMES.get(goal.store_id, goal.store_id),
                "type": goal.type,
                "period": goal.period,
                "week_start": goal.week_start.isoformat(),
                "week_end": goal.week_end.isoformat(),
                "target_value": target,
                "current_value": current,
                "percentage": percentage,
                "achieved": achieved,
                "is_finished": goal.week_end < today,
                "bonus_percentage_achieved": achieved_rate,
                "bonus_percentage_not_achieved": not_achieved_rate,
                "applied_bonus_percentage": rate,
                "bonus_value": custom_round(current * rate / 100) if rate is not None else 0.0,
            })
        entries.sort(key=lambda e: e["week_start"], reverse=True)
        payload = {
            "goals": entries,
            "summary": {
                "total_goals": len(entries),
                "achieved_goals": sum(1 for e in entries if e["achieved"] and e["is_finished"]),
                "total_bonus": custom_round(sum(e["bonus_value"] for e in entries if e["is_finished"])),
                "total_sales": sum(e["current_value"] for e in entries),
            },
        }
    payload["user"] = {
        "id": user.id,
        "full_name": user.full_name,
        "role": user.role,
        "store_id": user.store_id,
    }
    return payload


def cashier_goal_progress(goal_id: int | None = None, store_id: str | None = None) -> list[dict]:
    if goal_id is not None:
        goal = get_cashier_goal(goal_id)
        return [cashier_goal_result(goal)]
    query = db.session.query(CashierGoal).filter(CashierGoal.is_active.is_(True))
    if not is_all_stores(store_id):
        query = query.filter(CashierGoal.store_id == store_id)
    return [cashier_goal_result(goal) for goal in query.order_by(CashierGoal.week_start.desc(), CashierGoal.id)]


def cashier_dashboard(user: User, today: date) -> dict:
    """The cashier's weekly goal containing today, with expected progress for the days elapsed."""
    goal = (
        db.session.query(CashierGoal)
        .filter(
            CashierGoal.cashier_id == user.id,
            CashierGoal.is_active.is_(True),
            CashierGoal.period_type == "weekly",
            CashierGoal.week_start <= today,
            CashierGoal.week_end >= today,
        )
        .order_by(CashierGoal.week_start.desc(), CashierGoal.id.desc())
        .first()
    )
    if goal is None:
        return {
            "has_goal": False,
            "message": "No active weekly goal",
            "week_start": today.isoformat(),
            "week_end": today.isoformat(),
        }

    result = cashier_goal_result(goal)
    total_days = 7
    if goal.week_start <= today <= goal.week_end:
        elapsed_days = (today - goal.week_start).days + 1
    elif today > goal.week_end:
        elapsed_days = total_days
    else:
        elapsed_days = 0
    expected = elapsed_days / total_days * result["target_percentage"]

    return {
        "has_goal": True,
        "goal_id": goal.id,
        "store_id": goal.store_id,
        "week_start": goal.week_start.isoformat(),
        "week_end": goal.week_end.isoformat(),
        "payment_methods": result["payment_methods"],
        "target_percentage": result["target_percentage"],
        "current_percentage": round(result["percentage_achieved"], 2),
        "expected_percentage": round(expected, 2),
        "is_on_track": result["percentage_achieved"] >= expected,
        "is_goal_met": result["is_goal_met"],
        "elapsed_days": elapsed_days,
        "total_days": total_days,
        "total_store_sales": round(result["total_store_sales"], 2),
        "target_method_sales": round(result["target_method_sales"], 2),
        "sales_by_method": [
            {"method": row["payment_method"], "total": row["total_gross"]} for row in result["receipt_totals"]
        ],
        "bonus_percentage": result["bonus_percentage"],
        "bonus_value": result["bonus_value"],
    }


from datetime import date

import pytest

from bonusboard.models import CashierGoal, SalesGoal
from bonusboard.services import goal_service
from bonusboard.services.goal_service import (
    GoalNotFoundError,
    GoalOverlapError,
    GoalSlot,
    find_overlapping_goals,
    ranges_overlap,
)
from bonusboard.validation import ValidationError


def _goal(goal_id, start, end, *, store="saron1", goal_type="individual", period="weekly", seller_id=7, active=True):
    return SalesGoal(
        id=goal_id,
        store_id=store,
        type=goal_type,
        period=period,
        seller_id=seller_id if goal_type == "individual" else None,
        week_start=start,
        week_end=end,
        target_value=1000,
        is_active=active,
    )


def _slot(start, end, *, store="saron1", goal_type="individual", period="weekly", seller_id=7):
    return GoalSlot(
        store_id=store,
        type=goal_type,
        period=period,
        seller_id=seller_id if goal_type == "individual" else None,
        week_start=start,
        week_end=end,
    )


class TestOverlapDetection:

    existing = [_goal(1, date(2024, 1, 1), date(2024, 1, 7))]

    def test_intersecting_range_clashes(self):
        clashes = find_overlapping_goals(_slot(date(2024, 1, 5), date(2024, 1, 10)), self.existing)
        assert [g.id for g in clashes] == [1]

    def test_adjacent_range_does_not_clash(self):
        assert find_overlapping_goals(_slot(date(2024, 1, 8), date(2024, 1, 14)), self.existing) == []

    def test_containing_range_clashes(self):
        clashes = find_overlapping_goals(_slot(date(2023, 12, 25), date(2024, 1, 31)), self.existing)
        assert [g.id for g in clashes] == [1]

    def test_excluded_id_is_ignored(self):
        assert find_overlapping_goals(_slot(date(2024, 1, 5), date(2024, 1, 10)), self.existing, exclude_id=1) == []

    def test_other_seller_does_not_clash(self):
        assert find_overlapping_goals(_slot(date(2024, 1, 1), date(2024, 1, 7), seller_id=8), self.existing) == []

    def test_team_and_individual_do_not_clash(self):
        team_slot = _slot(date(2024, 1, 1), date(2024, 1, 7), goal_type="team")
        assert find_overlapping_goals(team_slot, self.existing) == []

        team_goal = _goal(2, date(2024, 1, 3), date(2024, 1, 9), goal_type="team")
        assert [g.id for g in find_overlapping_goals(team_slot, [team_goal])] == [2]

    def test_other_period_or_store_or_inactive_does_not_clash(self):
        slot = _slot(date(2024, 1, 1), date(2024, 1, 7))
        others = [
            _goal(3, date(2024, 1, 1), date(2024, 1, 31), period="monthly"),
            _goal(4, date(2024, 1, 1), date(2024, 1, 7), store="saron2"),
            _goal(5, date(2024, 1, 1), date(2024, 1, 7), active=False),
        ]
        assert find_overlapping_goals(slot, others) == []

    @pytest.mark.parametrize(
        "start,end,expected",
        [
            (date(2024, 1, 7), date(2024, 1, 7), True),
            (date(2024, 1, 8), date(2024, 1, 8), False),
            (date(2023, 12, 31), date(2024, 1, 1), True),
        ],
    )
    def test_single_day_edges(self, start, end, expected):
        assert ranges_overlap(start, end, date(2024, 1, 1), date(2024, 1, 7)) is expected


def _payload(seller, **overrides):
    data = {
        "store_id": "saron1",
        "type": "individual",
        "period": "weekly",
        "seller_id": seller.id,
        "week_start": "2024-01-01",
        "week_end": "2024-01-07",
        "target_value": 10000,
    }
    data.update(overrides)
    return data


def test_create_goal_persists(db_session, make_user):
    seller = make_user("vendor", "Ana Souza")

    goal = goal_service.create_goal(_payload(seller), created_by_id=seller.id)

    assert goal.id is not None
    assert goal.week_start == date(2024, 1, 1)
    assert goal.target_value == 10000
    assert goal.is_active is True


def test_create_overlapping_goal_is_rejected(db_session, make_user):
    seller = make_user("vendor", "Ana Souza")
    first = goal_service.create_goal(_payload(seller))

    with pytest.raises(GoalOverlapError) as excinfo:
        goal_service.create_goal(_payload(seller, week_start="2024-01-05", week_end="2024-01-10"))

    assert excinfo.value.details() == [{"id": first.id, "week_start": "2024-01-01", "week_end": "2024-01-07"}]
    assert db_session.query(SalesGoal).count() == 1


def test_update_in_place_does_not_clash_with_itself(db_session, make_user):
    seller = make_user("vendor", "Ana Souza")
    goal = goal_service.create_goal(_payload(seller))

    updated = goal_service.update_goal(goal.id, {"week_end": "2024-01-06", "target_value": 8000})

    assert updated.week_end == date(2024, 1, 6)
    assert updated.target_value == 8000


def test_update_into_another_goal_is_rejected(db_session, make_user):
    seller = make_user("vendor", "Ana Souza")
    goal_service.create_goal(_payload(seller))
    second = goal_service.create_goal(_payload(seller, week_start="2024-01-08", week_end="2024-01-14"))

    with pytest.raises(GoalOverlapError):
        goal_service.update_goal(second.id, {"week_start": "2024-01-06"})


def test_reactivating_into_an_overlap_is_rejected(db_session, make_user):
    seller = make_user("vendor", "Ana Souza")
    old = goal_service.create_goal(_payload(seller, is_active=False))
    current = goal_service.create_goal(_payload(seller, week_start="2024-01-05", week_end="2024-01-10"))

    with pytest.raises(GoalOverlapError) as excinfo:
        goal_service.update_goal(old.id, {"is_active": True})

    assert [g.id for g in excinfo.value.overlapping] == [current.id]
    db_session.refresh(old)
    assert old.is_active is False


def test_deactivating_skips_overlap_check(db_session, make_user):
    seller = make_user("vendor", "Ana Souza")
    first = goal_service.create_goal(_payload(seller))
    goal_service.update_goal(first.id, {"is_active": False})
    goal_service.create_goal(_payload(seller, week_start="2024-01-05", week_end="2024-01-10"))

    goal = goal_service.update_goal(first.id, {"is_active": False, "target_value": 500})

    assert goal.target_value == 500


@pytest.mark.parametrize(
    "overrides,message",
    [
        ({"week_start": "2024-01-09"}, "week_start must be on or before week_end"),
        ({"seller_id": None}, "seller_id is required"),
        ({"type": "squad"}, "type must be one of"),
        ({"target_value": -5}, "target_value must be >= 0"),
        ({"week_end": "07/01/2024"}, "week_end must be a YYYY-MM-DD date"),
    ],
)
def test_create_goal_validation(db_session, make_user, overrides, message):
    seller = make_user("vendor", "Ana Souza")
    with pytest.raises(ValidationError) as excinfo:
        goal_service.create_goal(_payload(seller, **overrides))
    assert message in str(excinfo.value)


def test_team_goal_rejects_seller(db_session, make_user):
    seller = make_user("vendor", "Ana Souza")
    with pytest.raises(ValidationError):
        goal_service.create_goal(_payload(seller, type="team"))


def test_list_goals_filters(db_session, make_user, make_goal):
    ana = make_user("vendor", "Ana Souza")
    make_goal("saron1", date(2024, 1, 1), date(2024, 1, 7), 1000, seller=ana)
    make_goal("saron2", date(2024, 1, 1), date(2024, 1, 7), 5000)
    make_goal("saron3", date(2024, 1, 8), date(2024, 1, 14), 5000, is_active=False)

    assert len(goal_service.list_goals()) == 3
    assert [g.store_id for g in goal_service.list_goals(store_ids=["saron1", "saron2"])] == ["saron2", "saron1"]
    assert [g.seller_id for g in goal_service.list_goals(seller_id=ana.id)] == [ana.id]
    assert [g.store_id for g in goal_service.list_goals(goal_type="team", is_active=True)] == ["saron2"]
    assert [g.store_id for g in goal_service.list_goals(week_start=date(2024, 1, 8))] == ["saron3"]


def test_delete_missing_goal(db_session):
    with pytest.raises(GoalNotFoundError):
        goal_service.delete_goal(999)


def test_cashier_goal_crud(db_session, make_user):
    cashier = make_user("cashier", "Caio Lima")
    goal = goal_service.create_cashier_goal({
        "cashier_id": cashier.id,
        "store_id": "saron1",
        "week_start": "2024-01-01",
        "week_end": "2024-01-07",
        "payment_methods": ["PIX", " debito "],
        "target_percentage": 40,
        "bonus_percentage_achieved": 1.5,
    })
    assert goal.payment_methods == ["pix", "debito"]
    assert goal.period_type == "weekly"

    goal_service.update_cashier_goal(goal.id, {"target_percentage": 45})
    assert db_session.get(CashierGoal, goal.id).target_percentage == 45

    with pytest.raises(ValidationError):
        goal_service.update_cashier_goal(goal.id, {"target_percentage": 120})

    goal_service.delete_cashier_goal(goal.id)
    assert goal_service.list_cashier_goals() == []

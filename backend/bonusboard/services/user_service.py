# Overview: Service-layer lookups over the staff directory (seller names, bonus rates, manager stores).

from __future__ import annotations

from bonusboard.extensions import db
from bonusboard.models import USER_ROLES, User, UserStore
from bonusboard.services.concurrency import commit_with_retry
from bonusboard.validation import ValidationError


def get_user(user_id: int | None) -> User | None:
    if user_id is None:
        return None
    return db.session.get(User, user_id)


def list_active_users() -> list[User]:
    return db.session.query(User).filter(User.is_active.is_(True)).order_by(User.id).all()


def active_users_by_id() -> dict[int, User]:
    return {user.id: user for user in list_active_users()}


def get_user_store_ids(user: User) -> list[str]:
    """
    Stores a user is responsible for.

    Managers may hold several assignments; anyone without assignments
    falls back to their home store.
    """
    assigned = [
        row.store_id
        for row in db.session.query(UserStore).filter(UserStore.user_id == user.id).order_by(UserStore.id)
    ]
    if assigned:
        return assigned
    return [user.store_id] if user.store_id else []


def bonus_rates(user: User) -> tuple[float | None, float | None]:
    """(achieved, not achieved) bonus percentages; None where not configured."""
    achieved = user.bonus_percentage_achieved
    not_achieved = user.bonus_percentage_not_achieved
    return (
        float(achieved) if achieved is not None else None,
        float(not_achieved) if not_achieved is not None else None,
    )


def create_user(
    *,
    username: str,
    full_name: str,
    role: str,
    store_id: str | None = None,
    bonus_percentage_achieved: float | None = None,
    bonus_percentage_not_achieved: float | None = None,
) -> User:
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")
    if db.session.query(User).filter(User.username == username).first() is not None:
        raise ValidationError(f"Username already exists: {username}")
    user = User(
        username=username,
        full_name=full_name,
        role=role,
        store_id=store_id,
        bonus_percentage_achieved=bonus_percentage_achieved,
        bonus_percentage_not_achieved=bonus_percentage_not_achieved,
    )
    db.session.add(user)
    commit_with_retry()
    return user


def assign_store(user: User, store_id: str) -> UserStore:
    existing = (
        db.session.query(UserStore)
        .filter(UserStore.user_id == user.id, UserStore.store_id == store_id)
        .first()
    )
    if existing is not None:
        return existing
    assignment = UserStore(user_id=user.id, store_id=store_id)
    db.session.add(assignment)
    commit_with_retry()
    return assignment

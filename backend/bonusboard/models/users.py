from __future__ import annotations

from ..extensions import db
from bonusboard.time_utils import to_utc_z

USER_ROLES = ("admin", "manager", "vendor", "cashier", "finance")


class User(db.Model):
    """
    Directory entry for a staff member.

    Sales are attributed by seller name, so full_name must match the name
    the ERP records on each sale (compared case/whitespace-insensitively).
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False)
    full_name = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(16), nullable=False, default="vendor", index=True)
    store_id = db.Column(db.String(32), nullable=True, index=True)

    # Percent of own sales paid when the goal is met / missed; None = not configured
    bonus_percentage_achieved = db.Column(db.Numeric(6, 2, asdecimal=False), nullable=True)
    bonus_percentage_not_achieved = db.Column(db.Numeric(6, 2, asdecimal=False), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store_assignments = db.relationship("UserStore", backref="user", lazy=True, cascade="all, delete-orphan")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "role": self.role,
            "store_id": self.store_id,
            "bonus_percentage_achieved": self.bonus_percentage_achieved,
            "bonus_percentage_not_achieved": self.bonus_percentage_not_achieved,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class UserStore(db.Model):
    """Manager <-> store assignment."""
    __tablename__ = "user_stores"
    __table_args__ = (
        db.UniqueConstraint("user_id", "store_id", name="uq_user_stores_user_store"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    store_id = db.Column(db.String(32), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

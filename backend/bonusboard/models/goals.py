from __future__ import annotations

from ..extensions import db
from bonusboard.time_utils import to_iso_date, to_utc_z

GOAL_TYPES = ("individual", "team")
GOAL_PERIODS = ("weekly", "monthly")


class SalesGoal(db.Model):
    """
    Sales target for one seller (individual) or a whole store (team).

    Active goals in the same (store, type, period, seller slot) must not
    overlap; the goal service checks this on create/update.
    """
    __tablename__ = "sales_goals"
    __table_args__ = (
        db.Index("ix_sales_goals_slot", "store_id", "type", "period", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.String(32), nullable=False)
    type = db.Column(db.String(16), nullable=False)
    period = db.Column(db.String(16), nullable=False)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # Inclusive date range; monthly goals use the same columns
    week_start = db.Column(db.Date, nullable=False)
    week_end = db.Column(db.Date, nullable=False)

    target_value = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )

    seller = db.relationship("User", foreign_keys=[seller_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "type": self.type,
            "period": self.period,
            "seller_id": self.seller_id,
            "week_start": to_iso_date(self.week_start),
            "week_end": to_iso_date(self.week_end),
            "target_value": float(self.target_value or 0),
            "is_active": self.is_active,
            "created_by_id": self.created_by_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CashierGoal(db.Model):
    """Share of store sales a cashier must settle through the given payment methods."""
    __tablename__ = "cashier_goals"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    store_id = db.Column(db.String(32), nullable=False, index=True)
    period_type = db.Column(db.String(16), nullable=False, default="weekly")
    week_start = db.Column(db.Date, nullable=False)
    week_end = db.Column(db.Date, nullable=False)
    payment_methods = db.Column(db.JSON, nullable=False, default=list)
    target_percentage = db.Column(db.Numeric(6, 2, asdecimal=False), nullable=False)
    bonus_percentage_achieved = db.Column(db.Numeric(6, 2, asdecimal=False), nullable=False, default=0)
    bonus_percentage_not_achieved = db.Column(db.Numeric(6, 2, asdecimal=False), nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now()
    )

    cashier = db.relationship("User", foreign_keys=[cashier_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cashier_id": self.cashier_id,
            "store_id": self.store_id,
            "period_type": self.period_type,
            "week_start": to_iso_date(self.week_start),
            "week_end": to_iso_date(self.week_end),
            "payment_methods": list(self.payment_methods or []),
            "target_percentage": float(self.target_percentage or 0),
            "bonus_percentage_achieved": float(self.bonus_percentage_achieved or 0),
            "bonus_percentage_not_achieved": float(self.bonus_percentage_not_achieved or 0),
            "is_active": self.is_active,
            "created_by_id": self.created_by_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

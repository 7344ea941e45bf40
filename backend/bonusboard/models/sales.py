from __future__ import annotations

from ..extensions import db
from bonusboard.time_utils import to_iso_date, to_utc_z


class Sale(db.Model):
    """
    One finalized transaction pulled from the Dapic ERP.

    Rows are written only by the sync service and removed only in bulk by
    (store, date range); there is no in-place editing.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("store_id", "sale_code", name="uq_sales_store_code"),
        # Composite index for store-scoped date range queries
        db.Index("ix_sales_store_date", "store_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_code = db.Column(db.String(64), nullable=False)
    sale_date = db.Column(db.Date, nullable=False, index=True)
    total_value = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    seller_name = db.Column(db.String(255), nullable=False)
    client_name = db.Column(db.String(255), nullable=True)
    store_id = db.Column(db.String(32), nullable=False)
    status = db.Column(db.String(32), nullable=False, default="Finalizado")
    payment_method = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    items = db.relationship(
        "SaleItem", backref="sale", lazy=True, cascade="all, delete-orphan", passive_deletes=True
    )
    receipts = db.relationship(
        "SaleReceipt", backref="sale", lazy=True, cascade="all, delete-orphan", passive_deletes=True
    )

    def to_dict(self, include_children: bool = False) -> dict:
        data = {
            "id": self.id,
            "sale_code": self.sale_code,
            "sale_date": to_iso_date(self.sale_date),
            "total_value": float(self.total_value or 0),
            "seller_name": self.seller_name,
            "client_name": self.client_name,
            "store_id": self.store_id,
            "status": self.status,
            "payment_method": self.payment_method,
            "created_at": to_utc_z(self.created_at),
        }
        if include_children:
            data["items"] = [item.to_dict() for item in self.items]
            data["receipts"] = [receipt.to_dict() for receipt in self.receipts]
        return data


class SaleItem(db.Model):
    """Line item on a synced sale."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_code = db.Column(db.String(64), nullable=True)
    product_description = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Numeric(12, 3, asdecimal=False), nullable=False, default=1)
    unit_price = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    total_price = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_code": self.product_code,
            "product_description": self.product_description,
            "quantity": float(self.quantity or 0),
            "unit_price": float(self.unit_price or 0),
            "total_price": float(self.total_price or 0),
        }


class SaleReceipt(db.Model):
    """
    One payment-method settlement of a sale.

    Split payments produce several receipts; cashier goals are measured
    against these rather than against Sale.payment_method.
    """
    __tablename__ = "sale_receipts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_method = db.Column(db.String(64), nullable=False)
    gross_value = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    net_value = db.Column(db.Numeric(12, 2, asdecimal=False), nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "payment_method": self.payment_method,
            "gross_value": float(self.gross_value or 0),
            "net_value": float(self.net_value or 0),
        }

# Overview: Service-layer operations for the synced sales ledger; filtered queries, bulk delete, and transactional inserts.

from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Iterable

from sqlalchemy import func

from bonusboard.config import is_all_stores
from bonusboard.extensions import db
from bonusboard.models import Sale, SaleItem, SaleReceipt
from bonusboard.services.concurrency import run_with_retry
from bonusboard.services.dapic_records import DapicSale
from bonusboard.time_utils import days_in_month


def _sales_query(
    *,
    store_id: str | None = None,
    seller_name: str | None = None,
    start: date | None = None,
    end: date | None = None,
):
    query = db.session.query(Sale)
    if not is_all_stores(store_id):
        query = query.filter(Sale.store_id == store_id)
    if seller_name:
        query = query.filter(func.lower(func.trim(Sale.seller_name)) == seller_name.strip().lower())
    if start:
        query = query.filter(Sale.sale_date >= start)
    if end:
        query = query.filter(Sale.sale_date <= end)
    return query


def get_sales(
    *,
    store_id: str | None = None,
    seller_name: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[Sale]:
    """
    Stored sales, newest first.

    store_id of None/'todas' means every store; seller_name is matched
    case- and whitespace-insensitively; the date range is inclusive.
    """
    return (
        _sales_query(store_id=store_id, seller_name=seller_name, start=start, end=end)
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .all()
    )


def sum_sales(
    *,
    store_id: str | None = None,
    seller_name: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> float:
    total = (
        _sales_query(store_id=store_id, seller_name=seller_name, start=start, end=end)
        .with_entities(func.coalesce(func.sum(Sale.total_value), 0))
        .scalar()
    )
    return float(total or 0)


def count_sales_by_day(store_id: str, start: date, end: date) -> dict[date, int]:
    rows = (
        db.session.query(Sale.sale_date, func.count(Sale.id))
        .filter(Sale.store_id == store_id, Sale.sale_date >= start, Sale.sale_date <= end)
        .group_by(Sale.sale_date)
        .all()
    )
    return {row[0]: int(row[1]) for row in rows}


def sale_exists(sale_code: str, store_id: str) -> bool:
    return (
        db.session.query(Sale.id)
        .filter(Sale.sale_code == sale_code, Sale.store_id == store_id)
        .first()
        is not None
    )


def delete_sales_by_period(store_id: str, start: date, end: date) -> int:
    """Delete every sale (with items and receipts) of one store in [start, end]. Returns sales removed."""
    sale_ids = db.session.query(Sale.id).filter(
        Sale.store_id == store_id,
        Sale.sale_date >= start,
        Sale.sale_date <= end,
    )

    def _op():
        # Bulk deletes skip ORM cascades, so children go first.
        db.session.query(SaleItem).filter(SaleItem.sale_id.in_(sale_ids.scalar_subquery())).delete(
            synchronize_session=False
        )
        db.session.query(SaleReceipt).filter(SaleReceipt.sale_id.in_(sale_ids.scalar_subquery())).delete(
            synchronize_session=False
        )
        removed = (
            db.session.query(Sale)
            .filter(Sale.store_id == store_id, Sale.sale_date >= start, Sale.sale_date <= end)
            .delete(synchronize_session=False)
        )
        db.session.commit()
        return removed

    return run_with_retry(_op)


def create_sale_with_items_and_receipts(store_id: str, record: DapicSale) -> Sale:
    """
    Persist one canonical sale with its items and receipts as a single unit.

    Either all rows are committed or the session is rolled back and the
    error propagates.
    """
    try:
        sale = Sale(
            sale_code=record.sale_code,
            sale_date=record.sale_date,
            total_value=record.total_value,
            seller_name=record.seller_name,
            client_name=record.client_name,
            store_id=store_id,
            status=record.status,
            payment_method=record.payment_method,
        )
        db.session.add(sale)
        db.session.flush()

        for item in record.items:
            db.session.add(
                SaleItem(
                    sale_id=sale.id,
                    product_code=item.product_code,
                    product_description=item.product_description,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                )
            )
        for receipt in record.receipts:
            db.session.add(
                SaleReceipt(
                    sale_id=sale.id,
                    payment_method=receipt.payment_method,
                    gross_value=receipt.gross_value,
                    net_value=receipt.net_value,
                )
            )
        db.session.commit()
        return sale
    except Exception:
        db.session.rollback()
        raise


def get_receipts_by_payment_method(
    store_id: str,
    start: date,
    end: date,
    payment_methods: Iterable[str],
) -> list[dict]:
    """
    Gross/net receipt totals for the target methods in [start, end].

    A receipt counts toward the first target whose lowercase label is a
    substring of the receipt's method, and is never counted twice.
    """
    targets = [m for m in payment_methods if m and m.strip()]
    if not targets:
        return []

    rows = (
        db.session.query(SaleReceipt.payment_method, SaleReceipt.gross_value, SaleReceipt.net_value)
        .join(Sale, SaleReceipt.sale_id == Sale.id)
        .filter(Sale.store_id == store_id, Sale.sale_date >= start, Sale.sale_date <= end)
        .all()
    )

    totals: dict[str, dict] = {}
    for method, gross, net in rows:
        label = (method or "").lower()
        for target in targets:
            if target.strip().lower() in label:
                bucket = totals.setdefault(target, {"payment_method": target, "total_gross": 0.0, "total_net": 0.0})
                bucket["total_gross"] += float(gross or 0)
                bucket["total_net"] += float(net or 0)
                break
    return list(totals.values())


def daily_totals(store_id: str | None, start: date, end: date) -> dict[date, float]:
    """Sum of sale values per calendar day in [start, end]."""
    query = db.session.query(Sale.sale_date, func.sum(Sale.total_value)).filter(
        Sale.sale_date >= start, Sale.sale_date <= end
    )
    if not is_all_stores(store_id):
        query = query.filter(Sale.store_id == store_id)
    rows = query.group_by(Sale.sale_date).all()
    return {row[0]: float(row[1] or 0) for row in rows}


def daily_revenue_comparison(
    *,
    store_id: str | None,
    month: int,
    year: int,
    compare_years: Iterable[int] = (),
) -> list[dict]:
    """Per-day revenue of one month for `year` and each comparison year, newest year first."""
    years = sorted({year, *compare_years}, reverse=True)
    results = []
    for query_year in years:
        start = date(query_year, month, 1)
        end = date(query_year, month, days_in_month(query_year, month))
        totals = daily_totals(store_id, start, end)
        daily = [
            {"date": day.isoformat(), "day": day.day, "total_value": value}
            for day, value in sorted(totals.items())
        ]
        results.append({
            "year": query_year,
            "daily": daily,
            "total": sum(entry["total_value"] for entry in daily),
        })
    return results

"""
Sales sync tests with an in-memory page source.

Verifies:
- Pagination ingests every page until a short page
- In-run duplicates and malformed records are counted, not fatal
- Additive mode is idempotent
- Replace mode only deletes its own window
- A second run on the same key is rejected while one is in progress
- An upstream failure mid-run reports what was already persisted
- A sale is stored together with its items and receipts, or not at all
"""

from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError

from bonusboard.models import Sale, SaleItem, SaleReceipt
from bonusboard.services import sales_store
from bonusboard.services.dapic_records import DapicReceipt, DapicSale, DapicSaleItem
from bonusboard.services.dapic_client import DapicError
from bonusboard.services.sync_service import ALREADY_SYNCING, MODE_REPLACE, SalesSyncService

DAY = date(2024, 1, 3)


def _record(code, *, day="2024-01-03", value="100,00", seller="Ana Souza", **extra):
    raw = {
        "Codigo": code,
        "DataFechamento": day,
        "ValorLiquido": value,
        "NomeVendedor": seller,
        "Recebimentos": [{"FormaPagamento": "PIX", "ValorBruto": value, "Valor": value}],
    }
    raw.update(extra)
    return raw


class FakeSource:
    """Serves pre-built pages; raises for pages listed in `fail_on`."""

    def __init__(self, pages, *, fail_on=(), totals=None):
        self.pages = pages
        self.fail_on = set(fail_on)
        self.totals = totals or {}
        self.calls = []

    def fetch_sales_page(self, store_id, start, end, page, page_size=None):
        self.calls.append((store_id, start, end, page, page_size))
        if page_size == 1:
            return {"TotalRegistros": self.totals.get((store_id, start), 0), "Dados": []}
        if page in self.fail_on:
            raise DapicError("Dapic /v1/vendaspdv returned HTTP 503 for store saron1", store_id)
        if page > len(self.pages):
            return {"Dados": []}
        return {"Dados": self.pages[page - 1]}


def _pages(*sizes):
    pages, code = [], 1
    for size in sizes:
        pages.append([_record(code + i) for i in range(size)])
        code += size
    return pages


def _service(source, **kwargs):
    kwargs.setdefault("page_size", 200)
    return SalesSyncService(source, stores=("saron1",), today=lambda: DAY, **kwargs)


def test_paginates_until_short_page(db_session):
    source = FakeSource(_pages(200, 200, 50))

    result = _service(source).sync_store("saron1", DAY, DAY)

    assert result.success is True
    assert result.sales_count == 450
    assert result.pages_fetched == 3
    assert db_session.query(Sale).count() == 450
    assert db_session.query(SaleReceipt).count() == 450


def test_page_ceiling_stops_the_run(db_session):
    source = FakeSource(_pages(2, 2, 2, 2))

    result = _service(source, page_size=2, max_pages=2).sync_store("saron1", DAY, DAY)

    assert result.success is True
    assert result.pages_fetched == 2
    assert result.sales_count == 4


def test_duplicates_within_run_are_skipped(db_session):
    source = FakeSource([[_record(1), _record(2), _record(1)]])

    result = _service(source).sync_store("saron1", DAY, DAY)

    assert result.sales_count == 2
    assert result.duplicates_skipped == 1
    assert result.skipped_count == 1
    assert db_session.query(Sale).count() == 2


def test_record_without_code_is_skipped(db_session):
    source = FakeSource([[_record(1), _record(None)]])

    result = _service(source).sync_store("saron1", DAY, DAY)

    assert result.sales_count == 1
    assert result.skipped_count == 1
    assert result.failed_count == 0


def test_malformed_record_fails_without_aborting_page(db_session):
    source = FakeSource([[_record(1), _record(2, Itens="broken"), _record(3)]])

    result = _service(source).sync_store("saron1", DAY, DAY)

    assert result.success is True
    assert result.sales_count == 2
    assert result.failed_count == 1
    assert result.failures[0]["sale_code"] == "2"


def test_additive_sync_is_idempotent(db_session):
    source = FakeSource(_pages(3))
    service = _service(source)

    first = service.sync_store_additive("saron1", DAY, DAY)
    second = service.sync_store_additive("saron1", DAY, DAY)

    assert first.sales_count == 3
    assert second.sales_count == 0
    assert second.existing_skipped == 3
    assert db_session.query(Sale).count() == 3


def test_replace_deletes_only_its_window(db_session, make_sale):
    make_sale("saron1", "Ana Souza", date(2024, 1, 2), 999.0, receipts=[("pix", 999.0)])
    make_sale("saron2", "Bia Lima", DAY, 50.0)
    stale = make_sale("saron1", "Ana Souza", DAY, 10.0, receipts=[("pix", 10.0)])
    stale_id = stale.id

    result = _service(FakeSource(_pages(2))).sync_store("saron1", DAY, DAY)

    assert result.deleted_count == 1
    assert result.sales_count == 2
    assert db_session.query(Sale).filter(Sale.id == stale_id).count() == 0
    assert db_session.query(Sale).filter(Sale.sale_date == date(2024, 1, 2)).count() == 1
    assert db_session.query(Sale).filter(Sale.store_id == "saron2").count() == 1
    assert db_session.query(SaleReceipt).count() == 3


def test_concurrent_run_on_same_key_is_rejected(db_session):
    source = FakeSource(_pages(1))
    service = _service(source)
    service.locks.acquire((MODE_REPLACE, "saron1", DAY.isoformat(), DAY.isoformat()))

    result = service.sync_store("saron1", DAY, DAY)

    assert result.success is False
    assert result.error == ALREADY_SYNCING
    assert source.calls == []
    assert service.get_sync_status("saron1", DAY, DAY) == "in_progress"


def test_upstream_failure_reports_persisted_count(db_session):
    source = FakeSource(_pages(200, 200, 200), fail_on={2})
    service = _service(source)

    result = service.sync_store("saron1", DAY, DAY)

    assert result.success is False
    assert "HTTP 503" in result.error
    assert result.sales_count == 200
    assert db_session.query(Sale).count() == 200
    assert service.get_sync_status("saron1", DAY, DAY) == "failed"


def test_status_lifecycle(db_session):
    service = _service(FakeSource(_pages(1)))

    assert service.get_sync_status("saron1", DAY, DAY) == "not_started"
    service.sync_store("saron1", DAY, DAY)
    assert service.get_sync_status("saron1", DAY, DAY) == "completed"


def test_sync_month_is_additive_for_one_store(db_session):
    source = FakeSource(_pages(1))
    service = _service(source)

    results = service.sync_month(2024, 2, "saron1")

    assert len(results) == 1
    assert results[0].mode == "additive"
    assert (results[0].start, results[0].end) == ("2024-02-01", "2024-02-29")


def test_sync_month_rejects_unknown_store(db_session):
    source = FakeSource(_pages(1))

    with pytest.raises(ValueError, match="Unknown store_id: saron9"):
        _service(source).sync_month(2024, 2, "saron9")

    assert source.calls == []


def test_resync_runs_each_day_for_each_store(db_session):
    source = FakeSource([])
    service = SalesSyncService(source, stores=("saron1", "saron2"), today=lambda: DAY)

    results = service.resync([date(2024, 1, 1), date(2024, 1, 2)])

    assert [(r.store, r.start) for r in results] == [
        ("saron1", "2024-01-01"),
        ("saron2", "2024-01-01"),
        ("saron1", "2024-01-02"),
        ("saron2", "2024-01-02"),
    ]


def test_check_discrepancies_compares_daily_counts(db_session, make_sale):
    make_sale("saron1", "Ana Souza", DAY, 10.0)
    make_sale("saron1", "Ana Souza", DAY, 20.0)
    source = FakeSource([], totals={("saron1", DAY): 3, ("saron1", date(2024, 1, 2)): 0})

    report = _service(source).check_discrepancies(days=2)

    assert report["days_checked"] == 2
    assert report["total_discrepancies"] == 1
    mismatch = report["discrepancies"][0]
    assert mismatch == {
        "date": "2024-01-03",
        "store": "saron1",
        "local_count": 2,
        "dapic_count": 3,
        "count_diff": 1,
    }


def test_sale_is_stored_with_items_and_receipts(db_session):
    raw = _record(
        "V1",
        value="250,00",
        Itens=[
            {"CodigoProduto": "P1", "Descricao": "Camisa", "Quantidade": 2, "ValorUnitario": "50,00", "ValorTotal": "100,00"},
            {"CodigoProduto": "P2", "Descricao": "Calça", "Quantidade": 1, "ValorUnitario": "150,00", "ValorTotal": "150,00"},
        ],
        Recebimentos=[
            {"FormaPagamento": "PIX", "ValorBruto": "100,00", "Valor": "100,00"},
            {"FormaPagamento": "Credito", "ValorBruto": "150,00", "Valor": "145,50"},
        ],
    )

    result = _service(FakeSource([[raw]])).sync_store("saron1", DAY, DAY)

    assert result.sales_count == 1
    sale = db_session.query(Sale).one()
    assert sale.payment_method == "pix, credito"
    items = db_session.query(SaleItem).filter_by(sale_id=sale.id).order_by(SaleItem.id).all()
    assert [(i.product_code, i.quantity, i.total_price) for i in items] == [("P1", 2, 100.0), ("P2", 1, 150.0)]
    receipts = db_session.query(SaleReceipt).filter_by(sale_id=sale.id).order_by(SaleReceipt.id).all()
    assert [(r.payment_method, r.gross_value, r.net_value) for r in receipts] == [
        ("pix", 100.0, 100.0),
        ("credito", 150.0, 145.5),
    ]


def test_failed_child_row_rolls_back_the_sale(db_session):
    record = DapicSale(
        sale_code="V9",
        sale_date=DAY,
        total_value=80.0,
        seller_name="Ana Souza",
        client_name=None,
        status="Finalizado",
        payment_method="pix",
        items=[DapicSaleItem("P1", "Camisa", 1.0, 80.0, 80.0)],
        receipts=[DapicReceipt(payment_method=None, gross_value=80.0, net_value=80.0)],
    )

    with pytest.raises(IntegrityError):
        sales_store.create_sale_with_items_and_receipts("saron1", record)

    assert db_session.query(Sale).count() == 0
    assert db_session.query(SaleItem).count() == 0
    assert db_session.query(SaleReceipt).count() == 0

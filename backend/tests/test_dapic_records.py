"""
Normalization of raw Dapic vendaspdv records.

Covers the Brazilian date/currency formats, payment-method labels,
and the canonical sale shape handed to the sync service.
"""

from datetime import date

import pytest

from bonusboard.services.dapic_records import (
    RecordError,
    normalize_payment_method,
    normalize_sale,
    page_records,
    parse_currency_value,
    parse_dapic_date,
    sale_code_of,
)

TODAY = date(2024, 6, 15)


class TestParseDapicDate:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("2024-05-01", date(2024, 5, 1)),
            ("2024-05-01T22:45:00", date(2024, 5, 1)),
            ("01/05/2024", date(2024, 5, 1)),
            ("01/05/2024 10:00:00", date(2024, 5, 1)),
        ],
    )
    def test_accepts_iso_and_brazilian_forms(self, raw, expected):
        assert parse_dapic_date(raw, TODAY) == expected

    def test_empty_falls_back_to_today(self):
        assert parse_dapic_date(None, TODAY) == TODAY
        assert parse_dapic_date("  ", TODAY) == TODAY

    def test_garbage_falls_back_to_today_with_warning(self, caplog):
        assert parse_dapic_date("ontem", TODAY) == TODAY
        assert "Could not parse Dapic date" in caplog.text

    def test_impossible_calendar_date_falls_back(self):
        assert parse_dapic_date("31/02/2024", TODAY) == TODAY


class TestParseCurrencyValue:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1.234,56", 1234.56),
            ("1234,56", 1234.56),
            ("1234.56", 1234.56),
            (99, 99.0),
            (12.5, 12.5),
            (None, 0.0),
            ("", 0.0),
        ],
    )
    def test_formats(self, raw, expected):
        assert parse_currency_value(raw) == pytest.approx(expected)

    def test_unparsable_is_zero(self):
        assert parse_currency_value("R$ abc") == 0.0


class TestPaymentMethod:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("PIX", "pix"),
            ("1 - Cartão de Crédito", "credito"),
            ("Cartao Debito", "debito"),
            ("Dinheiro", "dinheiro"),
            ("Carnê Loja", "crediario"),
            ("7 - Vale Troca", "vale troca"),
            (None, ""),
        ],
    )
    def test_labels(self, raw, expected):
        assert normalize_payment_method(raw) == expected


class TestNormalizeSale:

    def _raw(self, **overrides):
        raw = {
            "Codigo": 1001,
            "DataFechamento": "03/01/2024 15:20:00",
            "ValorLiquido": "1.500,00",
            "NomeVendedor": "  Ana Souza ",
            "NomeCliente": "Cliente X",
            "Itens": [
                {"CodigoProduto": "P1", "Descricao": "Vestido", "Quantidade": 2, "ValorUnitario": "500,00", "ValorTotal": "1.000,00"},
                {"CodigoProduto": "P2", "Quantidade": 1, "ValorUnitario": "500,00", "ValorTotal": "500,00"},
            ],
            "Recebimentos": [
                {"FormaPagamento": "PIX", "ValorBruto": "1.000,00", "Valor": "1.000,00"},
                {"FormaPagamento": "Cartão de Crédito", "ValorBruto": "500,00", "Valor": "480,00"},
            ],
        }
        raw.update(overrides)
        return raw

    def test_canonical_fields(self):
        sale = normalize_sale(self._raw(), TODAY)

        assert sale.sale_code == "1001"
        assert sale.sale_date == date(2024, 1, 3)
        assert sale.total_value == pytest.approx(1500.0)
        assert sale.seller_name == "Ana Souza"
        assert sale.client_name == "Cliente X"
        assert sale.status == "Finalizado"
        assert sale.payment_method == "pix, credito"
        assert [item.product_description for item in sale.items] == ["Vestido", "Sem Descrição"]
        assert [(r.payment_method, r.gross_value, r.net_value) for r in sale.receipts] == [
            ("pix", 1000.0, 1000.0),
            ("credito", 500.0, 480.0),
        ]

    def test_missing_seller_is_labelled(self):
        sale = normalize_sale(self._raw(NomeVendedor=None), TODAY)
        assert sale.seller_name == "Sem Vendedor"

    def test_zero_value_receipts_are_dropped(self):
        sale = normalize_sale(self._raw(Recebimentos=[{"FormaPagamento": "PIX", "ValorBruto": "0"}]), TODAY)
        assert sale.receipts == []

    def test_malformed_children_raise(self):
        with pytest.raises(RecordError):
            normalize_sale(self._raw(Itens="not a list"), TODAY)
        with pytest.raises(RecordError):
            normalize_sale(self._raw(Recebimentos=["PIX"]), TODAY)


def test_sale_code_falls_back_to_codigo_venda():
    assert sale_code_of({"CodigoVenda": " 77 "}) == "77"
    assert sale_code_of({}) == ""


def test_page_records_accepts_either_envelope():
    assert page_records({"Resultado": [{"Codigo": 1}]}) == [{"Codigo": 1}]
    assert page_records({"Dados": [{"Codigo": 2}]}) == [{"Codigo": 2}]
    assert page_records({"Dados": "oops"}) == []
    assert page_records(None) == []

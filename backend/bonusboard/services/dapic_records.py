# Overview: Normalization of raw Dapic sale records into the canonical sale shape used by sync.

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_BR_DATE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})")
_CODE_PREFIX = re.compile(r"^\d+\s*-\s*")

# (normalized label, substrings); first match wins so order matters
_PAYMENT_METHOD_RULES = (
    ("pix", ("pix",)),
    ("dinheiro", ("dinheiro", "especie", "espécie")),
    ("debito", ("débito", "debito")),
    ("credito", ("crédito", "credito")),
    ("boleto", ("boleto",)),
    ("crediario", ("crediário", "crediario", "carnê", "carne")),
    ("transferencia", ("transferência", "transferencia", "ted", "doc")),
)


class RecordError(ValueError):
    """Raised when a raw record cannot be turned into a sale."""


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def _first(raw: dict, *keys: str) -> Any:
    """First truthy value among `keys`."""
    for key in keys:
        value = raw.get(key)
        if value:
            return value
    return None


def parse_dapic_date(value: Any, today: date) -> date:
    """
    Parse a Dapic date into a calendar date.

    Accepts ISO ('2024-05-01', '2024-05-01T10:00:00') and Brazilian
    ('01/05/2024', '01/05/2024 10:00:00') forms. Anything else falls back
    to `today` with a warning; empty values fall back silently.
    """
    text = _to_text(value)
    if text is None:
        return today

    try:
        match = _ISO_DATE.match(text)
        if match:
            year, month, day = match.groups()
            return date(int(year), int(month), int(day))

        match = _BR_DATE.match(text)
        if match:
            day, month, year = match.groups()
            return date(int(year), int(month), int(day))

        return datetime.fromisoformat(text).date()
    except ValueError:
        pass

    logger.warning("Could not parse Dapic date %r, using %s", value, today.isoformat())
    return today


def parse_currency_value(value: Any) -> float:
    """
    Parse a currency amount that may be Brazilian formatted.

    '1.234,56' -> 1234.56, '1234,56' -> 1234.56, '1234.56' -> 1234.56.
    Unparsable input yields 0.
    """
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    text = _to_text(value)
    if text is None:
        return 0.0

    if "," in text:
        # thousands separators go first, then the decimal comma
        text = text.replace(".", "").replace(",", ".")

    try:
        return float(text)
    except ValueError:
        logger.warning("Could not parse currency value %r, using 0", value)
        return 0.0


def normalize_payment_method(raw_method: Any) -> str:
    """Map a raw Dapic payment label onto the fixed vocabulary."""
    raw = _to_text(raw_method)
    if raw is None:
        return ""

    method = raw.lower()
    for label, needles in _PAYMENT_METHOD_RULES:
        if any(needle in method for needle in needles):
            return label

    return _CODE_PREFIX.sub("", method).strip() or raw


@dataclass
class DapicSaleItem:
    product_code: str
    product_description: str
    quantity: float
    unit_price: float
    total_price: float


@dataclass
class DapicReceipt:
    payment_method: str
    gross_value: float
    net_value: float


@dataclass
class DapicSale:
    """Canonical sale record; the only shape the sync service persists."""
    sale_code: str
    sale_date: date
    total_value: float
    seller_name: str
    client_name: str | None
    status: str
    payment_method: str | None
    items: list[DapicSaleItem] = field(default_factory=list)
    receipts: list[DapicReceipt] = field(default_factory=list)


def sale_code_of(raw: dict) -> str:
    return str(_first(raw, "Codigo", "CodigoVenda") or "").strip()


def page_records(raw_page: Any) -> list[dict]:
    """Records of one vendaspdv page; the API uses either 'Resultado' or 'Dados'."""
    if not isinstance(raw_page, dict):
        return []
    records = raw_page.get("Resultado") or raw_page.get("Dados") or []
    if not isinstance(records, list):
        return []
    return records


def _sale_payment_method(receipts_raw: list[dict]) -> str | None:
    if not receipts_raw:
        return None
    method = normalize_payment_method(receipts_raw[0].get("FormaPagamento"))
    if len(receipts_raw) > 1:
        unique: list[str] = []
        for receipt in receipts_raw:
            normalized = normalize_payment_method(receipt.get("FormaPagamento"))
            if normalized and normalized not in unique:
                unique.append(normalized)
        if len(unique) > 1:
            method = ", ".join(unique)
    return method


def _normalize_item(raw_item: dict) -> DapicSaleItem:
    return DapicSaleItem(
        product_code=str(_first(raw_item, "CodigoProduto", "Codigo") or ""),
        product_description=_to_text(_first(raw_item, "Descricao", "NomeProduto")) or "Sem Descrição",
        quantity=parse_currency_value(raw_item.get("Quantidade")) or 1.0,
        unit_price=parse_currency_value(_first(raw_item, "ValorUnitario", "PrecoUnitario")),
        total_price=parse_currency_value(_first(raw_item, "ValorTotal", "Total")),
    )


def _normalize_receipt(raw_receipt: dict) -> DapicReceipt | None:
    method = normalize_payment_method(raw_receipt.get("FormaPagamento"))
    gross = parse_currency_value(_first(raw_receipt, "ValorBruto", "Valor"))
    net = parse_currency_value(_first(raw_receipt, "Valor", "ValorBruto"))
    if not method or gross <= 0:
        return None
    return DapicReceipt(payment_method=method, gross_value=gross, net_value=net)


def normalize_sale(raw: dict, today: date) -> DapicSale:
    """
    Build the canonical sale from one raw vendaspdv record.

    Raises RecordError when the record is not a mapping or lists are malformed.
    """
    if not isinstance(raw, dict):
        raise RecordError("Sale record is not an object")

    items_raw = raw.get("Itens") or []
    receipts_raw = raw.get("Recebimentos") or []
    if not isinstance(items_raw, list) or not isinstance(receipts_raw, list):
        raise RecordError("Itens/Recebimentos must be lists")
    if any(not isinstance(entry, dict) for entry in items_raw + receipts_raw):
        raise RecordError("Itens/Recebimentos entries must be objects")

    receipts = [r for r in (_normalize_receipt(entry) for entry in receipts_raw) if r is not None]

    return DapicSale(
        sale_code=sale_code_of(raw),
        sale_date=parse_dapic_date(_first(raw, "DataFechamento", "DataEmissao", "Data"), today),
        total_value=parse_currency_value(_first(raw, "ValorLiquido", "ValorTotal")),
        seller_name=_to_text(_first(raw, "NomeVendedor", "Vendedor")) or "Sem Vendedor",
        client_name=_to_text(_first(raw, "NomeCliente", "Cliente")),
        status=_to_text(raw.get("Status")) or "Finalizado",
        payment_method=_sale_payment_method(receipts_raw),
        items=[_normalize_item(entry) for entry in items_raw],
        receipts=receipts,
    )

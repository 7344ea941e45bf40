# Overview: HTTP adapter for the Dapic ERP API; per-store auth tokens, pagination, and all-store fan-out.

from __future__ import annotations

import copy
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Any, Callable, Mapping

import httpx

from bonusboard.config import ALL_STORES, STORE_IDS
from bonusboard.services.caching import TTLCache

logger = logging.getLogger(__name__)

SALES_ENDPOINT = "/v1/vendaspdv"
CLIENTS_ENDPOINT = "/v1/clientes"
PRODUCTS_ENDPOINT = "/v1/produtos"
BUDGETS_ENDPOINT = "/v1/orcamentos"
PAYABLES_ENDPOINT = "/v1/contaspagar"
RECEIVABLES_ENDPOINT = "/v1/contasreceber"

CLIENTS_MAX_PAGES = 20
PRODUCTS_MAX_PAGES = 5


class DapicError(Exception):
    """Raised when a Dapic call fails for one store."""

    def __init__(self, message: str, store_id: str | None = None):
        super().__init__(message)
        self.store_id = store_id


class CredentialsError(DapicError):
    """Store is not configured, or Dapic rejected its credentials."""


def _fmt_date(value: date | str | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


class DapicClient:
    """
    Thin synchronous client over the Dapic REST API.

    One instance is shared per app; tokens and "todas" reference data are
    cached on the instance, never globally.
    """

    def __init__(
        self,
        *,
        base_url: str,
        credentials: Mapping[str, tuple[str | None, str | None]],
        page_size: int = 200,
        sales_max_pages: int = 10,
        token_safety_margin: int = 300,
        reference_ttl: int = 300,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.page_size = page_size
        self.sales_max_pages = sales_max_pages
        self.token_safety_margin = token_safety_margin
        self._credentials = {
            store_id: creds for store_id, creds in credentials.items() if creds[0] and creds[1]
        }
        self._http = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

        cache_kwargs = {"clock": clock} if clock is not None else {}
        self._tokens = TTLCache(0, **cache_kwargs)
        self._reference = TTLCache(reference_ttl, **cache_kwargs)

        missing = [store_id for store_id in STORE_IDS if store_id not in self._credentials]
        if missing:
            logger.warning("Dapic credentials not configured for stores: %s", ", ".join(missing))

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **kwargs) -> "DapicClient":
        return cls(
            base_url=config["DAPIC_BASE_URL"],
            credentials=config["DAPIC_CREDENTIALS"],
            page_size=config["DAPIC_PAGE_SIZE"],
            sales_max_pages=config["DAPIC_SALES_MAX_PAGES"],
            token_safety_margin=config["DAPIC_TOKEN_SAFETY_MARGIN_SECONDS"],
            reference_ttl=config["REFERENCE_CACHE_TTL_SECONDS"],
            timeout=config["DAPIC_TIMEOUT_SECONDS"],
            **kwargs,
        )

    def close(self) -> None:
        self._http.close()

    def get_available_stores(self) -> list[str]:
        return [store_id for store_id in STORE_IDS if store_id in self._credentials]

    def clear_cache(self) -> None:
        self._reference.clear()

    # ------------------------------------------------------------------ auth

    def get_access_token(self, store_id: str) -> str:
        creds = self._credentials.get(store_id)
        if not creds:
            raise CredentialsError(f"Dapic credentials not configured for store: {store_id}", store_id)

        cached = self._tokens.get(store_id)
        if cached:
            return cached

        empresa, token = creds
        try:
            response = self._http.post(
                "/autenticacao/v1/login",
                json={"Empresa": empresa, "TokenIntegracao": token},
            )
            response.raise_for_status()
            body = response.json()
            access_token = body["access_token"]
            expires_in = int(body["expires_in"])
        except (httpx.HTTPError, KeyError, TypeError, ValueError) as exc:
            logger.error("Dapic authentication failed for store %s: %s", store_id, exc)
            raise CredentialsError(f"Failed to authenticate with Dapic API for store {store_id}", store_id) from exc

        self._tokens.set(store_id, access_token, ttl_seconds=expires_in - self.token_safety_margin)
        return access_token

    # -------------------------------------------------------------- requests

    def make_request(self, store_id: str, endpoint: str, params: Mapping[str, Any] | None = None) -> Any:
        token = self.get_access_token(store_id)
        query = {k: v for k, v in (params or {}).items() if v is not None}
        try:
            response = self._http.get(endpoint, params=query, headers={"Authorization": f"Bearer {token}"})
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise DapicError(
                f"Dapic {endpoint} returned HTTP {exc.response.status_code} for store {store_id}", store_id
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise DapicError(f"Dapic {endpoint} failed for store {store_id}: {exc}", store_id) from exc

    def _fan_out(self, func: Callable[[str], Any]) -> dict:
        """Run `func` for every configured store concurrently; failures never cancel siblings."""
        stores = self.get_available_stores()
        data: dict[str, Any] = {}
        errors: dict[str, str] = {}
        if not stores:
            return {"data": data, "errors": {ALL_STORES: "No Dapic store configured"}}

        with ThreadPoolExecutor(max_workers=len(stores)) as pool:
            futures = {store_id: pool.submit(func, store_id) for store_id in stores}
            for store_id, future in futures.items():
                try:
                    data[store_id] = future.result()
                except DapicError as exc:
                    logger.error("Dapic request failed for store %s: %s", store_id, exc)
                    errors[store_id] = str(exc)
        return {"data": data, "errors": errors}

    def make_request_all_stores(self, endpoint: str, params: Mapping[str, Any] | None = None) -> dict:
        return self._fan_out(lambda store_id: self.make_request(store_id, endpoint, params))

    def _paginate(self, store_id: str, endpoint: str, params: Mapping[str, Any], max_pages: int) -> dict:
        """
        Follow pages until a short page or `max_pages` is reached.

        Returns the last raw page with 'Dados' replaced by every record seen.
        """
        page_size = int(params.get("RegistrosPorPagina") or self.page_size)
        records: list = []
        last_page: Any = {}
        page = 1
        while page <= max_pages:
            last_page = self.make_request(store_id, endpoint, {**params, "RegistrosPorPagina": page_size, "Pagina": page})
            batch = (last_page or {}).get("Dados") or (last_page or {}).get("Resultado") or []
            records.extend(batch)
            if len(batch) < page_size:
                break
            page += 1
        result = dict(last_page or {})
        result["Dados"] = records
        return result

    # ----------------------------------------------------------------- sales

    def fetch_sales_page(
        self,
        store_id: str,
        start: date | str,
        end: date | str,
        page: int,
        page_size: int | None = None,
    ) -> Any:
        """One raw vendaspdv page; callers decide when to stop."""
        return self.make_request(
            store_id,
            SALES_ENDPOINT,
            {
                "DataInicial": _fmt_date(start),
                "DataFinal": _fmt_date(end),
                "FiltrarPor": "0",
                "Status": "1",
                "RegistrosPorPagina": page_size or self.page_size,
                "Pagina": page,
            },
        )

    def get_sales_pdv(
        self,
        store_id: str,
        start: date | str | None = None,
        end: date | str | None = None,
        *,
        page: int | None = None,
        max_pages: int | None = None,
    ) -> Any:
        if store_id == ALL_STORES:
            return self._fan_out(
                lambda sid: self.get_sales_pdv(sid, start, end, page=page, max_pages=max_pages)
            )
        if page is not None:
            return self.fetch_sales_page(store_id, start, end, page)

        params = {
            "DataInicial": _fmt_date(start),
            "DataFinal": _fmt_date(end),
            "FiltrarPor": "0",
            "Status": "1",
        }
        return self._paginate(store_id, SALES_ENDPOINT, params, max_pages or self.sales_max_pages)

    # -------------------------------------------------------- reference data

    def _shared_reference(self, name: str, fetch_one: Callable[[str], Any]) -> dict:
        """
        Reference data is identical across stores upstream: query one store,
        falling through on errors, and copy the result into every slot.
        """
        cache_key = f"{name}:{ALL_STORES}"
        cached = self._reference.get(cache_key)
        if cached is not None:
            return copy.deepcopy(cached)

        stores = self.get_available_stores()
        if not stores:
            return {"data": {}, "errors": {ALL_STORES: "No Dapic store configured"}}

        canonical = None
        errors: dict[str, str] = {}
        for store_id in stores:
            try:
                canonical = fetch_one(store_id)
                break
            except DapicError as exc:
                errors[store_id] = str(exc)
        if canonical is None:
            return {"data": {}, "errors": errors}

        result = {"data": {store_id: copy.deepcopy(canonical) for store_id in stores}, "errors": errors}
        self._reference.set(cache_key, result)
        return copy.deepcopy(result)

    def get_clients(self, store_id: str, start=None, end=None, *, page: int | None = None) -> Any:
        if store_id == ALL_STORES:
            return self._shared_reference("clientes", lambda sid: self.get_clients(sid, start, end))
        params = {"DataInicial": _fmt_date(start), "DataFinal": _fmt_date(end)}
        if page is not None:
            return self.make_request(store_id, CLIENTS_ENDPOINT, {**params, "Pagina": page})
        return self._paginate(store_id, CLIENTS_ENDPOINT, params, CLIENTS_MAX_PAGES)

    def get_products(self, store_id: str, start=None, end=None, *, page: int | None = None) -> Any:
        if store_id == ALL_STORES:
            return self._shared_reference("produtos", lambda sid: self.get_products(sid, start, end))
        params = {"DataInicial": _fmt_date(start), "DataFinal": _fmt_date(end)}
        if page is not None:
            return self.make_request(store_id, PRODUCTS_ENDPOINT, {**params, "Pagina": page})
        return self._paginate(store_id, PRODUCTS_ENDPOINT, params, PRODUCTS_MAX_PAGES)

    def _passthrough(self, endpoint: str, store_id: str, params: Mapping[str, Any]) -> Any:
        if store_id == ALL_STORES:
            return self.make_request_all_stores(endpoint, params)
        return self.make_request(store_id, endpoint, params)

    def get_budgets(self, store_id: str, **params) -> Any:
        return self._passthrough(BUDGETS_ENDPOINT, store_id, params)

    def get_payables(self, store_id: str, **params) -> Any:
        return self._passthrough(PAYABLES_ENDPOINT, store_id, params)

    def get_receivables(self, store_id: str, **params) -> Any:
        return self._passthrough(RECEIVABLES_ENDPOINT, store_id, params)

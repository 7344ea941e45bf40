"""
Dapic HTTP adapter tests against httpx.MockTransport.

Verifies:
- Tokens are cached per store and renewed after expiry
- Unconfigured stores fail fast without touching the network
- Pagination stops on a short page
- All-store fan-out reports partial failure instead of raising
- Shared reference data is fetched once and copied to every store
"""

import json

import httpx
import pytest

from bonusboard.services.dapic_client import CredentialsError, DapicClient, DapicError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class FakeDapic:
    """Minimal Dapic API: login by Empresa, bearer-authenticated GETs."""

    def __init__(self, *, failing_stores=(), total_sales=0):
        self.logins = []
        self.gets = []
        self.failing_stores = set(failing_stores)
        self.total_sales = total_sales

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/autenticacao/v1/login":
            body = json.loads(request.content)
            self.logins.append(body["Empresa"])
            return httpx.Response(200, json={"access_token": f"tok-{body['Empresa']}", "expires_in": 3600})

        store = request.headers["Authorization"].removeprefix("Bearer tok-")
        self.gets.append((store, request.url.path, dict(request.url.params)))
        if store in self.failing_stores:
            return httpx.Response(500, json={"error": "boom"})

        if request.url.path == "/v1/vendaspdv":
            page = int(request.url.params["Pagina"])
            size = int(request.url.params["RegistrosPorPagina"])
            first = (page - 1) * size
            count = max(0, min(size, self.total_sales - first))
            rows = [{"Codigo": first + i + 1} for i in range(count)]
            return httpx.Response(200, json={"Dados": rows, "TotalRegistros": self.total_sales})
        return httpx.Response(200, json={"Dados": [{"Nome": "Cliente"}]})


def _client(fake, clock, credentials=None, **kwargs):
    creds = credentials or {"saron1": ("saron1", "t1"), "saron2": ("saron2", "t2")}
    return DapicClient(
        base_url="https://dapic.test",
        credentials=creds,
        transport=httpx.MockTransport(fake.handler),
        clock=clock,
        **kwargs,
    )


def test_token_is_cached_until_safety_margin():
    fake, clock = FakeDapic(), FakeClock()
    client = _client(fake, clock)

    client.make_request("saron1", "/v1/clientes")
    client.make_request("saron1", "/v1/clientes")
    assert fake.logins == ["saron1"]

    # expires_in 3600 minus the 300s margin
    clock.now += 3299
    client.make_request("saron1", "/v1/clientes")
    assert fake.logins == ["saron1"]

    clock.now += 2
    client.make_request("saron1", "/v1/clientes")
    assert fake.logins == ["saron1", "saron1"]


def test_unconfigured_store_makes_no_network_call():
    fake, clock = FakeDapic(), FakeClock()
    client = _client(fake, clock, credentials={"saron1": ("saron1", "t1"), "saron3": (None, "t3")})

    with pytest.raises(CredentialsError) as excinfo:
        client.make_request("saron3", "/v1/clientes")

    assert excinfo.value.store_id == "saron3"
    assert fake.logins == []
    assert fake.gets == []
    assert client.get_available_stores() == ["saron1"]


def test_rejected_login_is_a_credentials_error():
    def handler(request):
        return httpx.Response(401, json={"error": "invalid"})

    client = DapicClient(
        base_url="https://dapic.test",
        credentials={"saron1": ("saron1", "bad")},
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(CredentialsError):
        client.get_access_token("saron1")


def test_http_error_becomes_dapic_error():
    fake, clock = FakeDapic(failing_stores={"saron1"}), FakeClock()
    client = _client(fake, clock)

    with pytest.raises(DapicError) as excinfo:
        client.make_request("saron1", "/v1/vendaspdv")
    assert "HTTP 500" in str(excinfo.value)


def test_sales_pagination_stops_on_short_page():
    fake, clock = FakeDapic(total_sales=5), FakeClock()
    client = _client(fake, clock, page_size=2)

    result = client.get_sales_pdv("saron1", "2024-01-01", "2024-01-31")

    assert [row["Codigo"] for row in result["Dados"]] == [1, 2, 3, 4, 5]
    assert [params["Pagina"] for _, _, params in fake.gets] == ["1", "2", "3"]
    assert fake.gets[0][2]["DataInicial"] == "2024-01-01"


def test_sales_pagination_respects_page_ceiling():
    fake, clock = FakeDapic(total_sales=50), FakeClock()
    client = _client(fake, clock, page_size=2, sales_max_pages=3)

    result = client.get_sales_pdv("saron1", "2024-01-01", "2024-01-31")

    assert len(result["Dados"]) == 6
    assert len(fake.gets) == 3


def test_single_page_request_is_passed_through():
    fake, clock = FakeDapic(total_sales=5), FakeClock()
    client = _client(fake, clock, page_size=2)

    page = client.fetch_sales_page("saron1", "2024-01-01", "2024-01-31", 3)

    assert page["Dados"] == [{"Codigo": 5}]
    assert page["TotalRegistros"] == 5


def test_all_stores_fan_out_reports_partial_failure():
    fake, clock = FakeDapic(failing_stores={"saron2"}), FakeClock()
    client = _client(fake, clock)

    result = client.make_request_all_stores("/v1/orcamentos")

    assert set(result["data"]) == {"saron1"}
    assert set(result["errors"]) == {"saron2"}


def test_shared_reference_data_is_fetched_once():
    fake, clock = FakeDapic(), FakeClock()
    client = _client(fake, clock, reference_ttl=300)

    first = client.get_clients("todas")
    second = client.get_clients("todas")

    assert set(first["data"]) == {"saron1", "saron2"}
    assert first == second
    assert len([g for g in fake.gets if g[1] == "/v1/clientes"]) == 1

    client.clear_cache()
    client.get_clients("todas")
    assert len([g for g in fake.gets if g[1] == "/v1/clientes"]) == 2


def test_shared_reference_falls_through_failing_store():
    fake, clock = FakeDapic(failing_stores={"saron1"}), FakeClock()
    client = _client(fake, clock)

    result = client.get_products("todas")

    assert set(result["data"]) == {"saron1", "saron2"}
    assert "saron1" in result["errors"]

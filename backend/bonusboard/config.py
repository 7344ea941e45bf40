from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_list(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


# Pseudo store id used by the dashboard for "every store".
ALL_STORES = "todas"

STORE_IDS = ("saron1", "saron2", "saron3")
STORE_NAMES = {
    "saron1": "Saron 1",
    "saron2": "Saron 2",
    "saron3": "Saron 3",
}

# Percent of each qualifying vendor's sales paid to the store manager.
MANAGER_TEAM_OVERRIDE_RATE = 0.2

HISTORY_START = "2024-01-01"


def is_all_stores(store_id: str | None) -> bool:
    return store_id is None or store_id in ("", "all", ALL_STORES)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///bonusboard.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Dapic ERP
    DAPIC_BASE_URL = os.environ.get("DAPIC_BASE_URL", "https://api.dapic.com.br")
    DAPIC_TIMEOUT_SECONDS = _env_int("DAPIC_TIMEOUT_SECONDS", 30)
    # store id -> (empresa, token de integracao); a store with either value empty is unconfigured
    DAPIC_CREDENTIALS = {
        "saron1": (os.environ.get("DAPIC_EMPRESA"), os.environ.get("DAPIC_TOKEN_INTEGRACAO")),
        "saron2": (os.environ.get("DAPIC_EMPRESA_SARON2"), os.environ.get("DAPIC_TOKEN_INTEGRACAO_SARON2")),
        "saron3": (os.environ.get("DAPIC_EMPRESA_SARON3"), os.environ.get("DAPIC_TOKEN_INTEGRACAO_SARON3")),
    }
    DAPIC_PAGE_SIZE = _env_int("DAPIC_PAGE_SIZE", 200)
    DAPIC_SALES_MAX_PAGES = _env_int("DAPIC_SALES_MAX_PAGES", 10)
    DAPIC_TOKEN_SAFETY_MARGIN_SECONDS = 300
    REFERENCE_CACHE_TTL_SECONDS = _env_int("REFERENCE_CACHE_TTL_SECONDS", 300)

    # Sync
    SYNC_MAX_PAGES = _env_int("SYNC_MAX_PAGES", 100)

    # Pattern estimator
    PATTERN_CACHE_TTL_SECONDS = _env_int("PATTERN_CACHE_TTL_SECONDS", 3600)

    # Stores whose vendors are paid on the store's team goal
    TEAM_BONUS_STORE_IDS = _env_list("TEAM_BONUS_STORE_IDS", "saron2")

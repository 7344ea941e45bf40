# Overview: Flask API routes passing Dapic ERP queries through for one store or every store ("todas").

from flask import Blueprint, current_app, jsonify, request

from bonusboard.config import ALL_STORES, STORE_IDS
from bonusboard.decorators import require_role, require_user
from bonusboard.extensions import get_dapic_client
from bonusboard.services.dapic_client import CredentialsError, DapicError


dapic_bp = Blueprint("dapic", __name__, url_prefix="/api/dapic")


def _known_store(store_id: str) -> bool:
    return store_id == ALL_STORES or store_id in STORE_IDS


def _call(store_id: str, func):
    if not _known_store(store_id):
        return jsonify({"error": f"Unknown store: {store_id}"}), 404
    try:
        return jsonify(func()), 200
    except CredentialsError as exc:
        return jsonify({"error": str(exc), "store": exc.store_id}), 400
    except DapicError as exc:
        current_app.logger.error("Dapic request failed for %s: %s", store_id, exc)
        return jsonify({"error": str(exc), "store": exc.store_id}), 502


@dapic_bp.get("/stores")
@require_user
def available_stores():
    return jsonify({"stores": get_dapic_client().get_available_stores()}), 200


@dapic_bp.get("/<store_id>/clientes")
@require_user
@require_role("admin", "manager")
def clients(store_id: str):
    client = get_dapic_client()
    return _call(store_id, lambda: client.get_clients(
        store_id,
        request.args.get("DataInicial"),
        request.args.get("DataFinal"),
        page=request.args.get("Pagina", type=int),
    ))


@dapic_bp.get("/<store_id>/produtos")
@require_user
@require_role("admin", "manager")
def products(store_id: str):
    client = get_dapic_client()
    return _call(store_id, lambda: client.get_products(
        store_id,
        request.args.get("DataInicial"),
        request.args.get("DataFinal"),
        page=request.args.get("Pagina", type=int),
    ))


@dapic_bp.get("/<store_id>/vendaspdv")
@require_user
@require_role("admin", "manager")
def sales_pdv(store_id: str):
    client = get_dapic_client()
    return _call(store_id, lambda: client.get_sales_pdv(
        store_id,
        request.args.get("DataInicial"),
        request.args.get("DataFinal"),
        page=request.args.get("Pagina", type=int),
    ))


@dapic_bp.get("/<store_id>/orcamentos")
@require_user
@require_role("admin", "finance")
def budgets(store_id: str):
    client = get_dapic_client()
    return _call(store_id, lambda: client.get_budgets(store_id, **request.args.to_dict()))


@dapic_bp.get("/<store_id>/contaspagar")
@require_user
@require_role("admin", "finance")
def payables(store_id: str):
    client = get_dapic_client()
    return _call(store_id, lambda: client.get_payables(store_id, **request.args.to_dict()))


@dapic_bp.get("/<store_id>/contasreceber")
@require_user
@require_role("admin", "finance")
def receivables(store_id: str):
    client = get_dapic_client()
    return _call(store_id, lambda: client.get_receivables(store_id, **request.args.to_dict()))

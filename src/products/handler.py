"""
Handler for products microservice.

Routes:
- GET    /produtos                       Lista (filtro de exibição aplicado no modo strict)
- GET    /produtos/{id}                  Detalhe (404 se oculto pelo filtro)
- GET    /produtos/{id}/logs             Histórico de estoque do produto
- GET    /produtos/logs                  Histórico de estoque geral
- PUT    /produtos/{id}                  Edição; mudança de stock exige user_id e gera log
- DELETE /produtos/{id}                  Remove o registro (imagens ficam para a limpeza)
- POST   /produtos/reconciliar-estoque   Backoffice: conclui logs de estoque pendentes
"""

import json
from typing import Optional, Tuple

from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.parser import parse
from aws_lambda_powertools.utilities.typing import LambdaContext

from products.schemas import ProductUpdate
from products.service import ProductService
from shared.errors import AuditAppendFailure, Conflict, NotFound
from shared.responses import http_response

logger = Logger(service="products")


def _route(event: dict) -> Tuple[Optional[str], Optional[str]]:
    """(product_id, ação) a partir do proxy ou do rawPath."""
    path_params = event.get("pathParameters") or {}
    proxy = path_params.get("proxy") or path_params.get("id") or ""
    if not proxy:
        raw_path = (event.get("rawPath") or "").rstrip("/")
        tail = raw_path.split("/produtos", 1)[-1] if "/produtos" in raw_path else ""
        proxy = tail.strip("/")
    parts = [p for p in str(proxy).split("/") if p]
    product_id = parts[0] if parts and parts[0].isdigit() else None
    action = parts[-1] if parts and not parts[-1].isdigit() else None
    return product_id, action


def _is_backoffice(event: dict) -> bool:
    headers = event.get("headers") or {}
    return (headers.get("x-backoffice") or headers.get("X-Backoffice") or "").lower() == "true"


def _body_json(event: dict) -> dict:
    body = event.get("body")
    if body is None:
        return {}
    if isinstance(body, str):
        try:
            return json.loads(body) if body else {}
        except json.JSONDecodeError:
            return {}
    return body if isinstance(body, dict) else {}


@logger.inject_lambda_context
def lambda_handler(event: dict, context: LambdaContext) -> dict:
    method = event.get("requestContext", {}).get("http", {}).get("method")
    query_params = event.get("queryStringParameters") or {}

    if method == "OPTIONS":
        return http_response(200, {})

    try:
        product_id, action = _route(event)
        service = ProductService()

        if method == "GET":
            if action == "logs":
                page = int(query_params.get("page", 1))
                limit = int(query_params.get("limit", 50))
                pid = int(product_id) if product_id else None
                return http_response(200, service.list_inventory_logs(pid, page, limit))

            if product_id:
                product = service.get_product(int(product_id))
                if product is None:
                    return http_response(404, {"error": "Produto não encontrado"})
                return http_response(200, product)

            page = int(query_params.get("page", 1))
            limit = int(query_params.get("limit", 10))
            filters = {
                "name": query_params.get("name") or query_params.get("search"),
                "category": query_params.get("category"),
                "min_price": query_params.get("min_price"),
                "max_price": query_params.get("max_price"),
                "sort": query_params.get("sort", "newest"),
                "in_stock": (query_params.get("in_stock") or "").lower() == "true",
            }
            return http_response(200, service.list_products(page, limit, filters))

        if method == "POST" and action == "reconciliar-estoque":
            if not _is_backoffice(event):
                return http_response(403, {"error": "Acesso restrito ao backoffice"})
            return http_response(200, service.reconcile_pending_audits())

        if method == "PUT":
            body = _body_json(event)
            if not product_id and str(body.get("id", "")).isdigit():
                product_id = str(body["id"])
            if not product_id:
                return http_response(400, {"error": "ID obrigatório"})
            payload = parse(event=body, model=ProductUpdate)
            return http_response(200, service.update_product(int(product_id), payload))

        if method == "DELETE":
            if not product_id:
                return http_response(400, {"error": "ID obrigatório"})
            service.delete_product(int(product_id))
            return http_response(204, {})

        return http_response(405, {"error": f"Método {method} não permitido"})

    except NotFound as e:
        return http_response(404, {"error": str(e)})
    except Conflict as e:
        logger.warning(f"Conflito: {e!s}")
        return http_response(409, {"error": str(e)})
    except AuditAppendFailure as e:
        logger.error(f"Log de estoque: {e!s}")
        return http_response(503, {"error": "Alteração de estoque não registrada, tente novamente", "details": str(e)})
    except ValueError as e:
        logger.warning(f"Validação: {e!s}")
        return http_response(400, {"error": "Dados inválidos", "details": str(e)})
    except Exception as e:
        logger.exception("Erro crítico")
        return http_response(500, {"error": str(e)})

"""
Espelho dos produtos no Firebase Realtime Database (vitrine).

O Supabase é a fonte da verdade: toda escrita aqui é best-effort e uma
falha só é logada.
"""

import os
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict

import firebase_admin
from firebase_admin import credentials, db
from aws_lambda_powertools import Logger

logger = Logger(service="firebase")

MIRROR_ROOT = "products"
_MIRROR_EXCLUDED = {"pending_inventory_log"}

_firebase_db = None


def get_firebase_db():
    """Referência raiz do Realtime Database, inicializando o Admin SDK no primeiro uso."""
    global _firebase_db
    if _firebase_db is not None:
        return _firebase_db

    try:
        firebase_admin.get_app()
    except ValueError:
        env = {
            name: os.environ.get(name)
            for name in ("FIREBASE_PROJECT_ID", "FIREBASE_CLIENT_EMAIL", "FIREBASE_PRIVATE_KEY", "FIREBASE_DATABASE_URL")
        }
        missing = [name for name, value in env.items() if not value]
        if missing:
            raise ValueError(f"Credenciais do Firebase ausentes: {', '.join(missing)}")

        cred = credentials.Certificate({
            "type": "service_account",
            "project_id": env["FIREBASE_PROJECT_ID"],
            "private_key": env["FIREBASE_PRIVATE_KEY"].replace("\\n", "\n"),
            "client_email": env["FIREBASE_CLIENT_EMAIL"],
            "token_uri": "https://oauth2.googleapis.com/token",
        })
        firebase_admin.initialize_app(cred, {"databaseURL": env["FIREBASE_DATABASE_URL"]})
        logger.info("Firebase Admin SDK inicializado")

    _firebase_db = db.reference()
    return _firebase_db


def _product_ref(product_id: Any):
    return get_firebase_db().child(MIRROR_ROOT).child(str(product_id))


def serialize_product_view(view: Dict[str, Any]) -> Dict[str, Any]:
    """View do produto no formato aceito pelo RTDB (sem None, Decimal e datetime)."""
    out = {}
    for key, value in view.items():
        if value is None or key in _MIRROR_EXCLUDED:
            continue
        if isinstance(value, Decimal):
            out[key] = float(value)
        elif isinstance(value, datetime):
            out[key] = value.isoformat()
        else:
            out[key] = value
    return out


def set_product_in_firebase(view: Dict[str, Any]) -> bool:
    """Grava a view (imagens normalizadas, estoque atual). False quando o sync falhou."""
    product_id = view.get("id")
    if product_id is None:
        logger.warning("Produto sem id, espelho ignorado")
        return False
    try:
        _product_ref(product_id).set(serialize_product_view(view))
        logger.info("Produto espelhado no Firebase", extra={"product_id": product_id})
        return True
    except Exception as e:
        logger.error("Falha ao espelhar produto", extra={"product_id": product_id, "error": str(e)})
        return False


def delete_product_from_firebase(product_id: Any) -> bool:
    """Remove products/{id} do espelho. False quando o sync falhou."""
    try:
        _product_ref(product_id).delete()
        logger.info("Produto removido do Firebase", extra={"product_id": product_id})
        return True
    except Exception as e:
        logger.error("Falha ao remover produto do Firebase", extra={"product_id": product_id, "error": str(e)})
        return False

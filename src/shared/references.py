"""Derives blob keys from the image references stored on a product."""

from typing import Any, List, Tuple
from urllib.parse import unquote, urlsplit

from aws_lambda_powertools import Logger

from shared.errors import InvalidReference
from shared.records import ProductRecord

logger = Logger(service="blob-references")


def key_from_reference(reference: Any) -> str:
    """
    Extrai a chave do blob (último segmento do path) de uma URL ou path.

    Ex.: 'https://host/uploads/1770.jpg?v=2' -> '1770.jpg',
    'product-images/1770.jpg' -> '1770.jpg', '1770.jpg' -> '1770.jpg'.

    Raises:
        InvalidReference: referência vazia, não-string ou sem nome de arquivo.
    """
    if not isinstance(reference, str):
        raise InvalidReference(reference, "não é uma string")
    value = reference.strip()
    if not value:
        raise InvalidReference(reference, "vazia")
    try:
        parts = urlsplit(value)
    except ValueError as e:
        raise InvalidReference(reference, f"URL malformada ({e})") from e
    path = parts.path if (parts.scheme or parts.netloc) else value.split("?")[0].split("#")[0]
    key = unquote(path.replace("\\", "/").rsplit("/", 1)[-1]).strip()
    if key in ("", ".", ".."):
        raise InvalidReference(reference, "sem nome de arquivo")
    return key


def resolve_references(record: ProductRecord) -> Tuple[List[str], List[InvalidReference]]:
    """Keys in stored order (duplicates kept) plus the references that could not be parsed."""
    keys: List[str] = []
    invalid: List[InvalidReference] = []
    for reference in record.images:
        try:
            keys.append(key_from_reference(reference))
        except InvalidReference as e:
            e.product_id = record.id
            invalid.append(e)
    return keys, invalid


def extract_references(record: ProductRecord) -> List[str]:
    keys, invalid = resolve_references(record)
    for err in invalid:
        logger.warning(
            "Referência de imagem ignorada",
            extra={"product_id": err.product_id, "reference": repr(err.reference), "reason": err.reason},
        )
    return keys

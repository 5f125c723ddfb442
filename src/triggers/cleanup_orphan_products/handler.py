"""Handler: disparado por EventBridge (cron semanal) ou invocação manual do backoffice."""

from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext

from shared.cancellation import stop_before_timeout
from triggers.cleanup_orphan_products.service import CleanupOrphanProductsService

logger = Logger(service="cleanup-orphan-products")


@logger.inject_lambda_context
def lambda_handler(event: dict, context: LambdaContext) -> dict:
    """Remove produtos sem nenhuma imagem existente. Evento manual aceita {"dry_run": true}."""
    try:
        dry_run = bool((event or {}).get("dry_run"))
        service = CleanupOrphanProductsService()
        result = service.run(should_stop=stop_before_timeout(context), dry_run=dry_run)
        logger.info(
            "Limpeza de produtos concluída",
            extra={
                "scanned": result.scanned,
                "deleted_count": result.deleted_count,
                "errors": len(result.errors),
                "cancelled": result.cancelled,
            },
        )
        return {"statusCode": 200, "body": result.model_dump(mode="json")}
    except Exception:
        logger.exception("Erro na limpeza de produtos órfãos")
        raise

"""Handler: disparado por EventBridge (cron diário meia-noite UTC) ou invocação manual."""

from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext

from shared.cancellation import stop_before_timeout
from triggers.cleanup_orphan_images.service import CleanupOrphanImagesService

logger = Logger(service="cleanup-orphan-images")


@logger.inject_lambda_context
def lambda_handler(event: dict, context: LambdaContext) -> dict:
    """Executa limpeza de imagens órfãs. Evento manual aceita {"dry_run": true}."""
    try:
        dry_run = bool((event or {}).get("dry_run"))
        service = CleanupOrphanImagesService()
        result = service.run(should_stop=stop_before_timeout(context), dry_run=dry_run)
        body = result.model_dump(mode="json")
        logger.info(
            "Cleanup concluído",
            extra={
                "scanned": result.scanned,
                "deleted_count": result.deleted_count,
                "errors": len(result.errors),
                "cancelled": result.cancelled,
            },
        )
        return {"statusCode": 200, "body": body}
    except Exception:
        logger.exception("Erro na limpeza de imagens órfãs")
        raise

"""
Save orchestration.

    validate:  schema validation -> entity resolution -> post_validate hook
    process:   format -> should_save -> main record write
               -> relationship reconciliation -> post_save hook -> response

Validation raises taxonomy errors directly. Every failure inside `process` is
classified once, at its boundary, by `save_error_handler`.
"""
import logging
import time

from api_save.core.logging.filters import reset_save_context, set_save_context
from api_save.exceptions.base import ApiSaveError, InternalSaveError, InvalidRequestDataError
from api_save.exceptions.mapper import save_error_handler
from api_save.repositories.registry import RepositoryRegistry, SessionScope
from api_save.schemas.save_data import SaveConfig, SaveRequest, SaveResponse
from api_save.validators.payload_validator import PayloadValidator

from .hooks import SaveContext, SaveHooks, maybe_await
from .main_writer import MainRecordWriter
from .relationship_reconciler import RelationshipReconciler

logger = logging.getLogger(__name__)


class SaveOrchestrator:
    """
    Runs saves for one configured endpoint. Safe to share between requests:
    per-request state lives in the SaveContext.
    """

    def __init__(self, config: SaveConfig, registry: RepositoryRegistry, hooks: SaveHooks | None = None):
        self.config = config
        self.registry = registry
        self.hooks = hooks or SaveHooks()
        self.validator = PayloadValidator(config, registry)

    async def save(self, request: SaveRequest, scope: SessionScope | None = None) -> SaveResponse:
        context = await self.validate(request, scope)
        return await self.process(context)

    async def validate(self, request: SaveRequest, scope: SessionScope | None = None) -> SaveContext:
        context = SaveContext(request, self.config, scope)
        token = set_save_context(context.entity, request.record_id)
        try:
            logger.debug("save.validate.start")

            schema = await maybe_await(self.hooks.get_schema(context))
            context.data = self.validator.validate_data(request.data, request.parents, request.record_id, schema)
            context.handle = self.validator.validate_model(context.entity, scope)

            await self._run_post_validate(context)

            logger.debug(
                "save.validate.success",
                extra={"relationships": sorted(context.data.relationships)},
            )
            return context
        finally:
            reset_save_context(token)

    async def _run_post_validate(self, context: SaveContext) -> None:
        try:
            replaced = await maybe_await(self.hooks.post_validate(context, context.data))
        except ApiSaveError:
            raise
        except Exception as exc:
            logger.info("save.validate.rejected", extra={"reason": str(exc)})
            raise InvalidRequestDataError(str(exc), previous_error=exc) from exc

        if replaced is not None:
            context.data.main = dict(replaced)

    async def process(self, context: SaveContext) -> SaveResponse:
        token = set_save_context(context.entity, context.data.id)
        start = time.perf_counter()
        try:
            async with save_error_handler(context.entity):
                response = await self._process(context)
        except ApiSaveError as exc:
            logger.info(
                "save.process.failed",
                extra={"code": int(exc.code), "status_code": exc.http_status()},
            )
            raise
        finally:
            reset_save_context(token)

        logger.info(
            "save.process.success",
            extra={
                "status_code": response.status_code,
                "duration_ms": int((time.perf_counter() - start) * 1000),
            },
        )
        return response

    async def _process(self, context: SaveContext) -> SaveResponse:
        data = context.data

        data.main = await maybe_await(self.hooks.format(context, data.main))

        if not await maybe_await(self.hooks.should_save(context, data.main)):
            logger.info("save.process.skipped", extra={"is_update": context.is_update})
            if data.id is not None:
                return SaveResponse.saved(data.id)
            return SaveResponse.no_content()

        saved_id = await MainRecordWriter(context.handle).write(data)
        if not saved_id:
            raise InternalSaveError("The main record could not be saved")

        if data.relationships:
            reconciler = RelationshipReconciler(self.config.relationships, context.scope)
            await reconciler.reconcile(data.relationships, saved_id, data.is_new)

        await maybe_await(self.hooks.post_save(context, saved_id, data.main))

        return SaveResponse.saved(saved_id)


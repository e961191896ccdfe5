"""SQL-backed PushNotificationConfigStore."""

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from a2a_runtime.errors import StoreUnavailableError
from a2a_runtime.observability.logging import get_logger
from a2a_runtime.push.models import PushNotificationAuthentication, PushNotificationConfig
from a2a_runtime.storage.database import Database
from a2a_runtime.storage.models import PushNotificationConfigModel

logger = get_logger(__name__)


class SQLPushNotificationConfigStore:
    """SQL-backed implementation of PushNotificationConfigStore.

    Configs are unique per (task_id, config_id) and listed in insertion order.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    async def set(self, task_id: str, config: PushNotificationConfig) -> PushNotificationConfig:
        """Insert or replace a config for a task.

        Args:
            task_id: Owning task
            config: Config to store; a missing id defaults to the task id

        Returns:
            The stored config with its id resolved

        Raises:
            StoreUnavailableError: If the database fails
        """
        stored = config.model_copy(update={"id": config.id or task_id})
        authentication = (
            stored.authentication.model_dump(mode="json") if stored.authentication else None
        )
        try:
            async with self._database.session() as session:
                stmt = select(PushNotificationConfigModel).where(
                    PushNotificationConfigModel.task_id == task_id,
                    PushNotificationConfigModel.config_id == stored.id,
                )
                model = (await session.execute(stmt)).scalar_one_or_none()
                if model is None:
                    session.add(
                        PushNotificationConfigModel(
                            task_id=task_id,
                            config_id=stored.id,
                            url=stored.url,
                            token=stored.token,
                            authentication=authentication,
                        )
                    )
                else:
                    model.url = stored.url
                    model.token = stored.token
                    model.authentication = authentication
        except SQLAlchemyError as e:
            raise self._unavailable("set", e) from e
        return stored

    async def get(
        self, task_id: str, config_id: Optional[str] = None
    ) -> Optional[PushNotificationConfig]:
        """Retrieve a config, or the first config of the task when config_id is None."""
        stmt = select(PushNotificationConfigModel).where(
            PushNotificationConfigModel.task_id == task_id
        )
        if config_id is not None:
            stmt = stmt.where(PushNotificationConfigModel.config_id == config_id)
        stmt = stmt.order_by(PushNotificationConfigModel.id.asc()).limit(1)
        try:
            async with self._database.session() as session:
                model = (await session.execute(stmt)).scalar_one_or_none()
                return self._model_to_config(model) if model is not None else None
        except SQLAlchemyError as e:
            raise self._unavailable("get", e) from e

    async def list(self, task_id: str) -> list[PushNotificationConfig]:
        """List every config of a task in insertion order."""
        stmt = (
            select(PushNotificationConfigModel)
            .where(PushNotificationConfigModel.task_id == task_id)
            .order_by(PushNotificationConfigModel.id.asc())
        )
        try:
            async with self._database.session() as session:
                result = await session.execute(stmt)
                return [self._model_to_config(m) for m in result.scalars().all()]
        except SQLAlchemyError as e:
            raise self._unavailable("list", e) from e

    async def delete(self, task_id: str, config_id: Optional[str] = None) -> None:
        """Delete one config, or every config of the task when config_id is None."""
        stmt = delete(PushNotificationConfigModel).where(
            PushNotificationConfigModel.task_id == task_id
        )
        if config_id is not None:
            stmt = stmt.where(PushNotificationConfigModel.config_id == config_id)
        try:
            async with self._database.session() as session:
                await session.execute(stmt)
        except SQLAlchemyError as e:
            raise self._unavailable("delete", e) from e

    @staticmethod
    def _unavailable(operation: str, error: SQLAlchemyError) -> StoreUnavailableError:
        logger.error("push_config_store_error", operation=operation, error=str(error))
        return StoreUnavailableError(operation, str(error))

    @staticmethod
    def _model_to_config(model: PushNotificationConfigModel) -> PushNotificationConfig:
        authentication = (
            PushNotificationAuthentication.model_validate(model.authentication)
            if model.authentication
            else None
        )
        return PushNotificationConfig(
            id=model.config_id,
            url=model.url,
            token=model.token,
            authentication=authentication,
        )

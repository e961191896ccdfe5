"""SQL-backed TaskStore.

Each operation runs in its own session. Database failures surface as
StoreUnavailableError; the store does not retry.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Select, delete, select
from sqlalchemy.exc import SQLAlchemyError

from a2a_runtime.errors import StoreUnavailableError
from a2a_runtime.observability.logging import get_logger
from a2a_runtime.storage.database import Database
from a2a_runtime.storage.models import TaskModel
from a2a_runtime.tasks.models import Artifact, Message, Task, TaskStatus

logger = get_logger(__name__)


class SQLTaskStore:
    """SQL-backed implementation of TaskStore.

    Example:
        >>> store = SQLTaskStore(database)
        >>> await store.save(task)
        >>> retrieved = await store.get(task.id)
    """

    def __init__(self, database: Database) -> None:
        """Initialize the store.

        Args:
            database: Database providing sessions
        """
        self._database = database

    async def get(self, task_id: str) -> Optional[Task]:
        """Retrieve a task by ID.

        Args:
            task_id: Unique identifier of the task

        Returns:
            Task if found, None otherwise

        Raises:
            StoreUnavailableError: If the database fails
        """
        try:
            async with self._database.session() as session:
                model = await session.get(TaskModel, task_id)
                return self._model_to_task(model) if model is not None else None
        except SQLAlchemyError as e:
            raise self._unavailable("get", e) from e

    async def save(self, task: Task) -> None:
        """Insert or replace a task.

        Args:
            task: Task to persist

        Raises:
            StoreUnavailableError: If the database fails
        """
        try:
            async with self._database.session() as session:
                model = await session.get(TaskModel, task.id)
                if model is None:
                    session.add(self._task_to_model(task))
                else:
                    model.context_id = task.context_id
                    model.state = task.status.state.value
                    model.status = task.status.model_dump(mode="json", by_alias=True)
                    model.history = [m.model_dump(mode="json", by_alias=True) for m in task.history]
                    model.artifacts = [
                        a.model_dump(mode="json", by_alias=True) for a in task.artifacts
                    ]
                    model.task_metadata = task.metadata
                    model.updated_at = datetime.now(timezone.utc)
        except SQLAlchemyError as e:
            raise self._unavailable("save", e) from e

    async def delete(self, task_id: str) -> None:
        """Delete a task by ID. Deleting an absent task is a no-op."""
        try:
            async with self._database.session() as session:
                await session.execute(delete(TaskModel).where(TaskModel.id == task_id))
        except SQLAlchemyError as e:
            raise self._unavailable("delete", e) from e

    async def list_by_context(self, context_id: str, limit: int = 100) -> list[Task]:
        """List tasks of a context, ordered by creation."""
        stmt = (
            select(TaskModel)
            .where(TaskModel.context_id == context_id)
            .order_by(TaskModel.created_at.asc())
            .limit(limit)
        )
        return await self._list("list_by_context", stmt)

    async def list_all(self, limit: int = 100) -> list[Task]:
        """List stored tasks, ordered by creation."""
        stmt = select(TaskModel).order_by(TaskModel.created_at.asc()).limit(limit)
        return await self._list("list_all", stmt)

    async def _list(self, operation: str, stmt: Select) -> list[Task]:
        try:
            async with self._database.session() as session:
                result = await session.execute(stmt)
                return [self._model_to_task(m) for m in result.scalars().all()]
        except SQLAlchemyError as e:
            raise self._unavailable(operation, e) from e

    @staticmethod
    def _unavailable(operation: str, error: SQLAlchemyError) -> StoreUnavailableError:
        logger.error("task_store_error", operation=operation, error=str(error))
        return StoreUnavailableError(operation, str(error))

    def _task_to_model(self, task: Task) -> TaskModel:
        """Convert a Task to its ORM model."""
        now = datetime.now(timezone.utc)
        return TaskModel(
            id=task.id,
            context_id=task.context_id,
            state=task.status.state.value,
            status=task.status.model_dump(mode="json", by_alias=True),
            history=[m.model_dump(mode="json", by_alias=True) for m in task.history],
            artifacts=[a.model_dump(mode="json", by_alias=True) for a in task.artifacts],
            task_metadata=task.metadata,
            created_at=now,
            updated_at=now,
        )

    def _model_to_task(self, model: TaskModel) -> Task:
        """Convert an ORM model back to a Task."""
        return Task(
            id=model.id,
            context_id=model.context_id,
            status=TaskStatus.model_validate(model.status),
            history=[Message.model_validate(m) for m in (model.history or [])],
            artifacts=[Artifact.model_validate(a) for a in (model.artifacts or [])],
            metadata=model.task_metadata,
        )

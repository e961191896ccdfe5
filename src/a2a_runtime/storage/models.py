"""SQLAlchemy ORM models for task and push notification config persistence."""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from a2a_runtime.storage.base_model import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskModel(Base):
    """ORM model for tasks.

    Status, history and artifacts are stored as JSON documents in their wire
    shape; the state is duplicated into its own column for querying.

    Attributes:
        id: Task identifier (primary key)
        context_id: Context grouping related tasks (indexed)
        state: Current TaskState value
        status: Serialized TaskStatus
        history: Serialized message history
        artifacts: Serialized artifacts
        task_metadata: Task metadata (``metadata`` column)
        created_at: First time the task was saved
        updated_at: Last time the task was saved
    """

    __tablename__ = "a2a_tasks"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    context_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    state: Mapped[str] = mapped_column(String(32), nullable=False)

    status: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    history: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    artifacts: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    task_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata", JSON, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )


class PushNotificationConfigModel(Base):
    """ORM model for push notification configs.

    Attributes:
        id: Surrogate key preserving insertion order
        task_id: Owning task (indexed)
        config_id: Config identifier, unique within the task
        url: Webhook URL
        token: Optional notification token
        authentication: Serialized PushNotificationAuthentication
        created_at: When the config was first stored
    """

    __tablename__ = "a2a_push_notification_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    config_id: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    authentication: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("task_id", "config_id", name="uq_push_config_task_config"),
        Index("idx_push_config_task", "task_id", "id"),
    )

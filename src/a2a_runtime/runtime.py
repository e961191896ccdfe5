"""Composition root wiring stores, queues, push delivery and the request handler."""

from typing import TYPE_CHECKING, Optional

from a2a_runtime.agents.base import AgentExecutor
from a2a_runtime.config import RuntimeConfig
from a2a_runtime.events.manager import QueueManager
from a2a_runtime.observability.logging import get_logger
from a2a_runtime.push.delivery import WebhookDelivery
from a2a_runtime.push.sender import PushNotificationSender
from a2a_runtime.security.authorization import Authorizer
from a2a_runtime.server.request_handler import DefaultRequestHandler
from a2a_runtime.storage.base import PushNotificationConfigStore, TaskStore
from a2a_runtime.storage.memory import InMemoryPushNotificationConfigStore, InMemoryTaskStore
from a2a_runtime.tasks.manager import TaskManager

if TYPE_CHECKING:
    from a2a_runtime.storage.database import Database

logger = get_logger(__name__)


async def open_database(url: str) -> "Database":
    """Create a Database for ``url`` and make sure its tables exist."""
    from a2a_runtime.storage.database import Database, DatabaseConfig

    database = Database(DatabaseConfig(url=url))
    await database.create_tables()
    return database


def build_request_handler(
    agent_executor: AgentExecutor,
    config: Optional[RuntimeConfig] = None,
    database: Optional["Database"] = None,
    authorizer: Optional[Authorizer] = None,
    enable_push: bool = True,
) -> DefaultRequestHandler:
    """Build a fully wired DefaultRequestHandler.

    Args:
        agent_executor: Agent logic executing tasks
        config: Runtime configuration (defaults when omitted)
        database: Database backing SQL stores; in-memory stores are used when omitted
        authorizer: Authorization capability (allow-all when omitted)
        enable_push: Whether push notification operations are supported

    Returns:
        Request handler sharing one QueueManager with its push sender
    """
    runtime_config = config or RuntimeConfig()

    task_store: TaskStore
    config_store: PushNotificationConfigStore
    if database is not None:
        from a2a_runtime.storage.push_config_store import SQLPushNotificationConfigStore
        from a2a_runtime.storage.task_store import SQLTaskStore

        task_store = SQLTaskStore(database)
        config_store = SQLPushNotificationConfigStore(database)
    else:
        task_store = InMemoryTaskStore()
        config_store = InMemoryPushNotificationConfigStore()

    queue_manager = QueueManager(runtime_config.max_queue_size)
    task_manager = TaskManager(task_store, queue_manager)

    push_sender: Optional[PushNotificationSender] = None
    if enable_push:
        delivery = WebhookDelivery(
            max_attempts=runtime_config.push_max_attempts,
            backoff_base=runtime_config.push_backoff_base_seconds,
            backoff_factor=runtime_config.push_backoff_factor,
            timeout=runtime_config.push_request_timeout_seconds,
        )
        push_sender = PushNotificationSender(config_store, task_store, queue_manager, delivery)

    logger.info(
        "request_handler_built",
        storage="sql" if database is not None else "memory",
        push_enabled=enable_push,
        max_queue_size=runtime_config.max_queue_size,
    )

    return DefaultRequestHandler(
        agent_executor,
        task_store,
        queue_manager=queue_manager,
        push_sender=push_sender,
        authorizer=authorizer,
        config=runtime_config,
        task_manager=task_manager,
    )

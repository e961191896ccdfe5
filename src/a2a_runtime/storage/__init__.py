"""Storage layer for task and push notification config persistence.

This module provides store interfaces, in-memory implementations and
SQLAlchemy-backed implementations.
"""

# NOTE: Lazy imports keep SQLAlchemy out of the import path of the core
# Import these directly when needed:
# from a2a_runtime.storage.base import TaskStore, PushNotificationConfigStore
# from a2a_runtime.storage.memory import InMemoryTaskStore, InMemoryPushNotificationConfigStore
# from a2a_runtime.storage.database import Database, DatabaseConfig
# from a2a_runtime.storage.task_store import SQLTaskStore
# from a2a_runtime.storage.push_config_store import SQLPushNotificationConfigStore

__all__ = [
    "TaskStore",
    "PushNotificationConfigStore",
    "InMemoryTaskStore",
    "InMemoryPushNotificationConfigStore",
    "Database",
    "DatabaseConfig",
    "SQLTaskStore",
    "SQLPushNotificationConfigStore",
]

_LOCATIONS = {
    "TaskStore": "a2a_runtime.storage.base",
    "PushNotificationConfigStore": "a2a_runtime.storage.base",
    "InMemoryTaskStore": "a2a_runtime.storage.memory",
    "InMemoryPushNotificationConfigStore": "a2a_runtime.storage.memory",
    "Database": "a2a_runtime.storage.database",
    "DatabaseConfig": "a2a_runtime.storage.database",
    "SQLTaskStore": "a2a_runtime.storage.task_store",
    "SQLPushNotificationConfigStore": "a2a_runtime.storage.push_config_store",
}


def __getattr__(name: str):
    """Lazy load attributes to avoid circular imports."""
    if name in _LOCATIONS:
        import importlib

        return getattr(importlib.import_module(_LOCATIONS[name]), name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")

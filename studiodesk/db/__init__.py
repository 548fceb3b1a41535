"""
StudioDesk Storage Package

Flat JSON-file collections for protocols and sessions, plus pluggable
task stores.
"""

from studiodesk.db.database import (
    Database,
    JsonCollection,
    JsonTaskStore,
    InMemoryTaskStore,
    TaskStore,
    create_task_store,
)

__all__ = [
    "Database",
    "JsonCollection",
    "JsonTaskStore",
    "InMemoryTaskStore",
    "TaskStore",
    "create_task_store",
]

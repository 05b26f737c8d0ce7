"""Database persistence layer for litestar-approvals.

This module provides SQLAlchemy models, repositories and store
implementations for persisting workflow definitions, instances and tasks.

Requires the [db] extra:
    pip install litestar-approvals[db]
"""

from __future__ import annotations

from litestar_approvals.db.models import (
    TaskAssigneeModel,
    TaskModel,
    WorkflowDefinitionModel,
    WorkflowInstanceModel,
)
from litestar_approvals.db.repositories import (
    TaskRepository,
    WorkflowDefinitionRepository,
    WorkflowInstanceRepository,
)
from litestar_approvals.db.stores import SQLAlchemyDefinitionStore, SQLAlchemyInstanceStore, SQLAlchemyTaskStore

__all__ = [
    "SQLAlchemyDefinitionStore",
    "SQLAlchemyInstanceStore",
    "SQLAlchemyTaskStore",
    "TaskAssigneeModel",
    "TaskModel",
    "TaskRepository",
    "WorkflowDefinitionModel",
    "WorkflowDefinitionRepository",
    "WorkflowInstanceModel",
    "WorkflowInstanceRepository",
]

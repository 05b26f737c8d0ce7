"""REST API for litestar-approvals.

This module provides the controllers, DTOs and exception handler behind the
approvals API. The API is enabled automatically when using ApprovalsPlugin
with enable_api=True (the default).

Example:
    Mount the API under a custom prefix with an authentication guard::

        from litestar import Litestar
        from litestar_approvals import ApprovalsPlugin, ApprovalsPluginConfig

        config = ApprovalsPluginConfig(
            api_path_prefix="/api/v1/approvals",
            api_guards=[require_auth_guard],
        )

        app = Litestar(plugins=[ApprovalsPlugin(config=config)])
"""

from __future__ import annotations

from litestar_approvals.web.controllers import DefinitionController, InstanceController, TaskController
from litestar_approvals.web.dto import (
    CancelInstanceDTO,
    CommentDTO,
    DecisionDTO,
    DefinitionSummaryDTO,
    GraphDTO,
    NodeExecutionDTO,
    ReassignTaskDTO,
    StartWorkflowDTO,
    TaskAssigneeDTO,
    TaskCommentDTO,
    TaskDTO,
    WorkflowInstanceDetailDTO,
    WorkflowInstanceDTO,
)
from litestar_approvals.web.exceptions import approvals_exception_handler, status_code_for

__all__ = [
    "CancelInstanceDTO",
    "CommentDTO",
    "DecisionDTO",
    "DefinitionController",
    "DefinitionSummaryDTO",
    "GraphDTO",
    "InstanceController",
    "NodeExecutionDTO",
    "ReassignTaskDTO",
    "StartWorkflowDTO",
    "TaskAssigneeDTO",
    "TaskCommentDTO",
    "TaskController",
    "TaskDTO",
    "WorkflowInstanceDTO",
    "WorkflowInstanceDetailDTO",
    "approvals_exception_handler",
    "status_code_for",
]

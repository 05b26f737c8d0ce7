"""Exception hierarchy for litestar-approvals."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

__all__ = (
    "AlreadyHandledError",
    "ApprovalsError",
    "AssigneeResolutionError",
    "ConcurrentUpdateError",
    "CorruptStateError",
    "FormValidationError",
    "InitiatorNotPermittedError",
    "InvalidStateError",
    "NotAssigneeError",
    "NotFoundError",
    "TaskNotFoundError",
    "WorkflowInstanceNotFoundError",
    "WorkflowNotFoundError",
    "WorkflowValidationError",
)


class ApprovalsError(Exception):
    """Base exception for all litestar-approvals errors.

    All exceptions raised by the approval engine inherit from this class so
    callers can catch every engine failure with a single except clause.
    """


class WorkflowValidationError(ApprovalsError):
    """Raised when a workflow definition is structurally invalid.

    Validation runs before a definition is created or updated; the write is
    aborted and the stored definition is left unchanged.

    Attributes:
        errors: List of validation error messages.
    """

    def __init__(self, errors: list[str]) -> None:
        """Initialize the exception with validation errors.

        Args:
            errors: List of validation error messages.
        """
        self.errors = errors
        super().__init__(f"Workflow validation failed: {'; '.join(errors)}")

    @property
    def reason(self) -> str:
        """The first validation failure."""
        return self.errors[0] if self.errors else ""


class FormValidationError(WorkflowValidationError):
    """Raised when the form fields attached to a workflow are invalid."""

    def __init__(self, errors: list[str]) -> None:
        """Initialize the exception with field validation errors.

        Args:
            errors: List of validation error messages.
        """
        self.errors = errors
        ApprovalsError.__init__(self, f"Form validation failed: {'; '.join(errors)}")


class NotFoundError(ApprovalsError):
    """Base exception for missing definitions, instances and tasks."""


class WorkflowNotFoundError(NotFoundError):
    """Raised when a workflow definition is not found.

    Attributes:
        workflow_id: The ID of the workflow that was not found.
        version: The specific version requested, if any.
    """

    def __init__(self, workflow_id: str | UUID, version: int | None = None) -> None:
        """Initialize the exception with workflow details.

        Args:
            workflow_id: The ID of the workflow that was not found.
            version: The specific version requested, if any.
        """
        self.workflow_id = workflow_id
        self.version = version
        msg = f"Workflow '{workflow_id}'"
        if version is not None:
            msg += f" version {version}"
        msg += " not found"
        super().__init__(msg)


class WorkflowInstanceNotFoundError(NotFoundError):
    """Raised when a workflow instance is not found.

    Attributes:
        instance_id: The ID of the workflow instance that was not found.
    """

    def __init__(self, instance_id: str | UUID) -> None:
        """Initialize the exception with instance details.

        Args:
            instance_id: The ID of the workflow instance that was not found.
        """
        self.instance_id = instance_id
        super().__init__(f"Workflow instance '{instance_id}' not found")


class TaskNotFoundError(NotFoundError):
    """Raised when a task is not found.

    Attributes:
        task_id: The ID of the task that was not found.
    """

    def __init__(self, task_id: str | UUID) -> None:
        """Initialize the exception with task details.

        Args:
            task_id: The ID of the task that was not found.
        """
        self.task_id = task_id
        super().__init__(f"Task '{task_id}' not found")


class AssigneeResolutionError(ApprovalsError):
    """Raised when an assignee descriptor cannot be turned into concrete users.

    This covers unknown users, departments and roles, roles without active
    holders, and hierarchy lookups that find no leader at the exact layer.

    Attributes:
        assignee_type: The descriptor type that failed to resolve.
        reference_id: The referenced id, if any.
    """

    def __init__(self, assignee_type: str, reference_id: str | None, reason: str) -> None:
        """Initialize the exception with resolution details.

        Args:
            assignee_type: The descriptor type that failed to resolve.
            reference_id: The referenced id, if any.
            reason: Why resolution failed.
        """
        self.assignee_type = assignee_type
        self.reference_id = reference_id
        self.reason = reason
        super().__init__(f"Cannot resolve {assignee_type} assignee '{reference_id}': {reason}")


class NotAssigneeError(ApprovalsError):
    """Raised when a user acts on a task they are not assigned to.

    Attributes:
        task_id: The ID of the task.
        user_id: The ID of the user attempting to act.
    """

    def __init__(self, task_id: str | UUID, user_id: str) -> None:
        """Initialize the exception with authorization details.

        Args:
            task_id: The ID of the task.
            user_id: The ID of the user attempting to act.
        """
        self.task_id = task_id
        self.user_id = user_id
        super().__init__(f"User '{user_id}' is not an assignee of task '{task_id}'")


class AlreadyHandledError(ApprovalsError):
    """Raised when a decision targets an assignee entry or task that is no longer pending.

    This prevents double application of a decision, which could advance an
    instance twice.

    Attributes:
        task_id: The ID of the task.
        status: The status the task or entry was found in.
    """

    def __init__(self, task_id: str | UUID, status: str, user_id: str | None = None) -> None:
        """Initialize the exception with task details.

        Args:
            task_id: The ID of the task.
            status: The status the task or entry was found in.
            user_id: The acting user, when the entry belongs to one.
        """
        self.task_id = task_id
        self.status = status
        self.user_id = user_id
        if user_id:
            msg = f"Assignee '{user_id}' of task '{task_id}' is already {status}"
        else:
            msg = f"Task '{task_id}' is already {status}"
        super().__init__(msg)


class ConcurrentUpdateError(AlreadyHandledError):
    """Raised when a conditional update loses against a concurrent write.

    The stored revision no longer matches the revision the caller read, so
    the caller must re-fetch current state before resubmitting.

    Attributes:
        entity: Kind of entity that was being updated.
        entity_id: ID of the entity.
        expected_revision: The revision the caller read.
    """

    def __init__(self, entity: str, entity_id: str | UUID, expected_revision: int) -> None:
        """Initialize the exception with conflict details.

        Args:
            entity: Kind of entity that was being updated.
            entity_id: ID of the entity.
            expected_revision: The revision the caller read.
        """
        self.entity = entity
        self.entity_id = entity_id
        self.expected_revision = expected_revision
        self.task_id = entity_id
        self.status = "modified"
        self.user_id = None
        ApprovalsError.__init__(
            self,
            f"{entity.capitalize()} '{entity_id}' was modified concurrently (expected revision {expected_revision})",
        )


class InvalidStateError(ApprovalsError):
    """Raised when an action targets an instance that cannot accept it.

    Terminal instances (completed, rejected or canceled) admit no transitions.

    Attributes:
        instance_id: The ID of the workflow instance.
        status: The current status of the instance.
    """

    def __init__(self, instance_id: str | UUID, status: str, reason: str | None = None) -> None:
        """Initialize the exception with instance state details.

        Args:
            instance_id: The ID of the workflow instance.
            status: The current status of the instance.
            reason: Additional context, if any.
        """
        self.instance_id = instance_id
        self.status = status
        msg = reason or f"Workflow instance '{instance_id}' is already {status}"
        super().__init__(msg)


class CorruptStateError(ApprovalsError):
    """Raised when an instance points at a node absent from its definition.

    This indicates the definition was edited incompatibly with live
    instances. It is reported, never silently recovered.

    Attributes:
        instance_id: The ID of the workflow instance.
        node_name: The dangling node name.
    """

    def __init__(self, instance_id: str | UUID, node_name: str) -> None:
        """Initialize the exception with the dangling pointer.

        Args:
            instance_id: The ID of the workflow instance.
            node_name: The dangling node name.
        """
        self.instance_id = instance_id
        self.node_name = node_name
        super().__init__(f"Workflow instance '{instance_id}' points at unknown node '{node_name}'")


class InitiatorNotPermittedError(ApprovalsError):
    """Raised when a user may not launch a workflow.

    Attributes:
        workflow_id: The ID of the workflow.
        user_id: The ID of the user attempting to launch it.
    """

    def __init__(self, workflow_id: str | UUID, user_id: str) -> None:
        """Initialize the exception with permission details.

        Args:
            workflow_id: The ID of the workflow.
            user_id: The ID of the user attempting to launch it.
        """
        self.workflow_id = workflow_id
        self.user_id = user_id
        super().__init__(f"User '{user_id}' is not permitted to start workflow '{workflow_id}'")

"""Task decision aggregation.

Functions here are pure: they take a task value and return a new one. The
caller persists the result with a revision-checked update, so two racing
decisions on the same task cannot both be applied.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import replace
from typing import TYPE_CHECKING

from litestar_approvals.core.models import TaskAssignee, TaskComment, utcnow
from litestar_approvals.core.types import ApprovalType, AssigneeType, Decision, TaskOutcome, TaskStatus
from litestar_approvals.exceptions import AlreadyHandledError, NotAssigneeError

if TYPE_CHECKING:
    from litestar_approvals.core.models import Task

__all__ = [
    "add_assignee",
    "add_comment",
    "cancel_task",
    "outcome_of",
    "record_decision",
    "replace_assignee",
]


def _copy(task: Task) -> Task:
    return replace(task, assignees=deepcopy(task.assignees), comments=list(task.comments))


def _require_pending(task: Task) -> None:
    if task.status is not TaskStatus.PENDING:
        raise AlreadyHandledError(task.id, task.status)


def outcome_of(task: Task) -> TaskOutcome:
    """Compute the aggregate outcome of a task's entries under its policy.

    REJECT always wins. With ``ALL`` every non-canceled entry must be
    approved; with ``ANY`` one approval is enough.
    """
    live = [a for a in task.assignees if a.status is not TaskStatus.CANCELED]
    if any(a.status is TaskStatus.REJECTED for a in live):
        return TaskOutcome.RESOLVED_REJECTED
    approved = [a for a in live if a.status is TaskStatus.APPROVED]
    if task.approval_type is ApprovalType.ANY:
        return TaskOutcome.RESOLVED_APPROVED if approved else TaskOutcome.PENDING
    if live and len(approved) == len(live):
        return TaskOutcome.RESOLVED_APPROVED
    return TaskOutcome.PENDING


def record_decision(
    task: Task,
    user_id: str,
    decision: Decision,
    comment: str | None = None,
) -> tuple[Task, TaskOutcome]:
    """Apply one assignee's decision to a task.

    Args:
        task: The task as loaded.
        user_id: The deciding user.
        decision: APPROVE or REJECT.
        comment: Optional comment stored on the entry.

    Returns:
        The updated task and its aggregate outcome.

    Raises:
        NotAssigneeError: If the user holds no entry on the task.
        AlreadyHandledError: If the task or the user's entry is no longer pending.

    Example:
        >>> task, outcome = record_decision(task, "bob", Decision.APPROVE, "ok")
        >>> outcome
        <TaskOutcome.PENDING: 'PENDING'>
    """
    entry = task.entry_for(user_id)
    if entry is None:
        raise NotAssigneeError(task.id, user_id)
    _require_pending(task)
    if entry.status is not TaskStatus.PENDING:
        raise AlreadyHandledError(task.id, entry.status, user_id)

    updated = _copy(task)
    now = utcnow()
    target = next(a for a in updated.assignees if a.user_id == user_id and a.status is TaskStatus.PENDING)
    target.status = TaskStatus.APPROVED if decision is Decision.APPROVE else TaskStatus.REJECTED
    target.comment = comment
    target.handled_at = now

    outcome = outcome_of(updated)
    if outcome is TaskOutcome.RESOLVED_APPROVED:
        updated.status = TaskStatus.APPROVED
        updated.completed_at = now
    elif outcome is TaskOutcome.RESOLVED_REJECTED:
        updated.status = TaskStatus.REJECTED
        updated.completed_at = now
    return updated, outcome


def add_assignee(task: Task, user_id: str, actor_id: str) -> Task:
    """Append a pending entry for ``user_id``.

    A user who already holds a pending entry gets no second one, and the
    task is returned unchanged.

    Raises:
        AlreadyHandledError: If the task is no longer pending.
    """
    _require_pending(task)
    if task.entry_for(user_id, pending_only=True) is not None:
        return task
    updated = _copy(task)
    updated.assignees.append(
        TaskAssignee(user_id=user_id, assignee_type=AssigneeType.SPECIFIC_USER, added_by=actor_id)
    )
    updated.comments.append(TaskComment(user_id=actor_id, content=f"Task reassigned to user {user_id}"))
    return updated


def replace_assignee(task: Task, old_user_id: str, new_user_id: str, actor_id: str) -> Task:
    """Hand ``old_user_id``'s pending entry over to ``new_user_id``.

    Raises:
        NotAssigneeError: If ``old_user_id`` holds no pending entry.
        AlreadyHandledError: If the task is no longer pending.
    """
    _require_pending(task)
    updated = _copy(task)
    old_entry = updated.entry_for(old_user_id, pending_only=True)
    if old_entry is None:
        raise NotAssigneeError(task.id, old_user_id)
    old_entry.status = TaskStatus.CANCELED
    old_entry.handled_at = utcnow()
    if updated.entry_for(new_user_id, pending_only=True) is None:
        updated.assignees.append(
            TaskAssignee(user_id=new_user_id, assignee_type=AssigneeType.SPECIFIC_USER, added_by=actor_id)
        )
    updated.comments.append(
        TaskComment(user_id=actor_id, content=f"Task reassigned from user {old_user_id} to user {new_user_id}")
    )
    return updated


def add_comment(task: Task, user_id: str, content: str) -> Task:
    """Append a comment. Comments are accepted on tasks in any status."""
    updated = _copy(task)
    updated.comments.append(TaskComment(user_id=user_id, content=content))
    return updated


def cancel_task(task: Task, reason: str, actor_id: str, *, force: bool = False) -> Task:
    """Cancel a task, force-setting every one of its entries to CANCELED.

    Args:
        task: The task as loaded.
        reason: Cancellation reason written to the audit comment.
        actor_id: The canceling user.
        force: Also cancel a task that was already decided.

    Raises:
        AlreadyHandledError: If the task is no longer pending and ``force`` is not set,
            or if it is already canceled.
    """
    if task.status is TaskStatus.CANCELED or not force:
        _require_pending(task)
    updated = _copy(task)
    now = utcnow()
    for entry in updated.assignees:
        entry.status = TaskStatus.CANCELED
        entry.handled_at = entry.handled_at or now
    updated.status = TaskStatus.CANCELED
    updated.completed_at = now
    updated.comments.append(TaskComment(user_id=actor_id, content=f"Workflow canceled: {reason}"))
    return updated

"""Engine configuration for litestar-approvals.

This module provides the options that change how the execution engine behaves,
independently of how it is wired into an application.
"""

from __future__ import annotations

from dataclasses import dataclass

from litestar_approvals.core.types import StrEnum

__all__ = ["ApprovalsConfig", "ResolutionFallback"]


class ResolutionFallback(StrEnum):
    """What to do when a node's assignees cannot be resolved.

    Attributes:
        FAIL: Abort the transition with ``AssigneeResolutionError``.
        SKIP_NODE: Record the node as skipped and continue with its successor.
        FLOW_ADMINS: Assign the workflow's flow administrators instead. Fails
            when the workflow has none.
    """

    FAIL = "FAIL"
    SKIP_NODE = "SKIP_NODE"
    FLOW_ADMINS = "FLOW_ADMINS"


@dataclass
class ApprovalsConfig:
    """Configuration for the execution engine.

    Attributes:
        resolution_fallback: Policy applied when assignee resolution fails.
        default_priority: Priority given to instances started without one.
        enforce_required_fields: Reject starts whose form data lacks a
            required field of the workflow's form.
        max_advance_attempts: How many times an advance is re-run after losing
            an instance update race while the instance is still waiting at
            the completed node.

    Example:
        >>> config = ApprovalsConfig(resolution_fallback=ResolutionFallback.FLOW_ADMINS)
    """

    resolution_fallback: ResolutionFallback = ResolutionFallback.FAIL
    default_priority: int = 0
    enforce_required_fields: bool = True
    max_advance_attempts: int = 3

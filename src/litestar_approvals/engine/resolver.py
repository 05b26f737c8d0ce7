"""Assignee resolution.

Turns abstract assignee descriptors into concrete user ids by consulting the
organization :class:`~litestar_approvals.core.directory.Directory`. Resolution
happens once, when a task is created; later changes to the organization do
not affect existing tasks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from litestar_approvals.core.types import AssigneeType, LayerType
from litestar_approvals.exceptions import AssigneeResolutionError

if TYPE_CHECKING:
    from litestar_approvals.core.directory import Directory, DirectoryUser
    from litestar_approvals.core.nodes import Assignee

__all__ = ["AssigneeResolver", "ResolutionContext", "ResolvedAssignee"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionContext:
    """What a resolution is relative to.

    Attributes:
        initiator_id: The user who launched the instance.
        instance_id: The instance the task is created for, if already known.
    """

    initiator_id: str
    instance_id: UUID | None = None


@dataclass(frozen=True)
class ResolvedAssignee:
    """A concrete user together with the descriptor type they came from."""

    user_id: str
    assignee_type: AssigneeType


class AssigneeResolver:
    """Resolve assignee descriptors against a directory.

    Attributes:
        directory: The organization directory.

    Example:
        >>> resolver = AssigneeResolver(directory)
        >>> await resolver.resolve(
        ...     Assignee(reference_id=None, assignee_type=AssigneeType.SUPERIOR, layer=1, layer_type=LayerType.UP),
        ...     ResolutionContext(initiator_id="alice"),
        ... )
        ['carol']
    """

    def __init__(self, directory: Directory) -> None:
        self.directory = directory

    async def _require_user(self, assignee: Assignee, user_id: str) -> DirectoryUser:
        user = await self.directory.get_user(user_id)
        if user is None:
            raise AssigneeResolutionError(assignee.assignee_type, user_id, "user not found")
        if not user.active:
            raise AssigneeResolutionError(assignee.assignee_type, user_id, "user is inactive")
        return user

    async def _initiator(self, assignee: Assignee, context: ResolutionContext) -> DirectoryUser:
        initiator = await self.directory.get_user(context.initiator_id)
        if initiator is None:
            raise AssigneeResolutionError(
                assignee.assignee_type, assignee.reference_id, f"initiator '{context.initiator_id}' not found"
            )
        return initiator

    async def resolve(self, assignee: Assignee, context: ResolutionContext) -> list[str]:
        """Resolve one descriptor.

        Args:
            assignee: The descriptor.
            context: The initiator and instance being resolved for.

        Returns:
            Ordered, de-duplicated user ids. Never empty.

        Raises:
            AssigneeResolutionError: If the descriptor cannot be resolved to at
                least one active user.
        """
        match assignee.assignee_type:
            case AssigneeType.SPECIFIC_USER:
                if not assignee.reference_id:
                    raise AssigneeResolutionError(assignee.assignee_type, None, "referenceId is required")
                user = await self._require_user(assignee, assignee.reference_id)
                return [user.id]

            case AssigneeType.SPECIFIC_USERS:
                member_ids = list(dict.fromkeys(assignee.member_ids))
                if not member_ids:
                    raise AssigneeResolutionError(assignee.assignee_type, assignee.reference_id, "no members")
                for member_id in member_ids:
                    await self._require_user(assignee, member_id)
                return member_ids

            case AssigneeType.ROLE:
                if not assignee.reference_id:
                    raise AssigneeResolutionError(assignee.assignee_type, None, "referenceId is required")
                holders = list(dict.fromkeys(await self.directory.get_users_with_role(assignee.reference_id)))
                if not holders:
                    raise AssigneeResolutionError(
                        assignee.assignee_type, assignee.reference_id, "role has no active holders"
                    )
                return holders

            case AssigneeType.DEPARTMENT_LEADER:
                layer, layer_type = self._layer(assignee)
                initiator = await self._initiator(assignee, context)
                if not initiator.department_id:
                    raise AssigneeResolutionError(
                        assignee.assignee_type, assignee.reference_id, "initiator has no department"
                    )
                leader_id = await self.directory.get_department_leader(initiator.department_id, layer, layer_type)
                if not leader_id:
                    raise AssigneeResolutionError(
                        assignee.assignee_type,
                        initiator.department_id,
                        f"no department leader at layer {layer} ({layer_type.name})",
                    )
                await self._require_user(assignee, leader_id)
                return [leader_id]

            case AssigneeType.SUPERIOR:
                layer, layer_type = self._layer(assignee)
                chain = await self.directory.get_manager_chain(context.initiator_id)
                if layer_type is LayerType.DOWN:
                    chain = list(reversed(chain))
                if layer > len(chain):
                    raise AssigneeResolutionError(
                        assignee.assignee_type,
                        context.initiator_id,
                        f"no superior at layer {layer} ({layer_type.name})",
                    )
                superior_id = chain[layer - 1]
                await self._require_user(assignee, superior_id)
                return [superior_id]

        raise AssigneeResolutionError(str(assignee.assignee_type), assignee.reference_id, "unsupported assignee type")

    @staticmethod
    def _layer(assignee: Assignee) -> tuple[int, LayerType]:
        if assignee.layer is None or assignee.layer < 1 or assignee.layer_type is None:
            raise AssigneeResolutionError(
                assignee.assignee_type, assignee.reference_id, "layer and layerType are required"
            )
        return assignee.layer, assignee.layer_type

    async def resolve_all(self, assignees: list[Assignee], context: ResolutionContext) -> list[ResolvedAssignee]:
        """Resolve every descriptor of a node and union the results.

        A user produced by several descriptors appears once, tagged with the
        type of the first descriptor that produced them.

        Raises:
            AssigneeResolutionError: If any descriptor fails to resolve.
        """
        resolved: dict[str, ResolvedAssignee] = {}
        for assignee in assignees:
            for user_id in await self.resolve(assignee, context):
                resolved.setdefault(user_id, ResolvedAssignee(user_id=user_id, assignee_type=assignee.assignee_type))
        logger.debug("Resolved %d assignee descriptor(s) to %s", len(assignees), list(resolved))
        return list(resolved.values())

"""Workflow definition structure.

A definition bundles the node tree with the metadata that governs who may
launch it, who administers it and what form an initiator fills in. Stored
definitions are immutable per version: editing a definition writes a new
version and running instances keep using the version they were started on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from litestar_approvals.core.forms import FormField, form_field_to_dict, form_fields_from_dict
from litestar_approvals.core.models import utcnow
from litestar_approvals.core.nodes import (
    ApprovalNode,
    ConditionNode,
    CopyNode,
    InitiatorNode,
    Node,
    RouterNode,
    node_from_dict,
    node_to_dict,
)
from litestar_approvals.core.types import FlowPermissionType, InitiatorType
from litestar_approvals.exceptions import WorkflowValidationError

if TYPE_CHECKING:
    from litestar_approvals.core.directory import DirectoryUser

__all__ = ["FlowPermission", "PermittedInitiator", "WorkflowDefinition"]


@dataclass(frozen=True)
class PermittedInitiator:
    """An entry of a workflow's initiator allow-list."""

    id: str
    type: InitiatorType = InitiatorType.USER


@dataclass(frozen=True)
class FlowPermission:
    """Who may launch instances of a workflow.

    Attributes:
        type: ALL, SPECIFIC or NONE.
        initiators: Allow-list consulted when ``type`` is SPECIFIC.
    """

    type: FlowPermissionType = FlowPermissionType.ALL
    initiators: list[PermittedInitiator] = field(default_factory=list)

    def allows(self, user_id: str, user: DirectoryUser | None = None) -> bool:
        """Check whether a user may launch the workflow.

        Args:
            user_id: The prospective initiator.
            user: The initiator's directory record, needed for department and
                role entries.

        Returns:
            True if the user may start an instance.
        """
        match self.type:
            case FlowPermissionType.ALL:
                return True
            case FlowPermissionType.NONE:
                return False
        for initiator in self.initiators:
            if initiator.type is InitiatorType.USER and initiator.id == user_id:
                return True
            if user is None:
                continue
            if initiator.type is InitiatorType.DEPARTMENT and initiator.id == user.department_id:
                return True
            if initiator.type is InitiatorType.ROLE and initiator.id in user.roles:
                return True
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": int(self.type),
            "initiators": [{"id": i.id, "type": int(i.type)} for i in self.initiators],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> FlowPermission:
        if not data:
            return cls()
        try:
            return cls(
                type=FlowPermissionType(data.get("type", FlowPermissionType.ALL)),
                initiators=[
                    PermittedInitiator(id=str(i["id"]), type=InitiatorType(i.get("type", InitiatorType.USER)))
                    for i in data.get("initiators") or []
                ],
            )
        except (KeyError, TypeError, ValueError) as e:
            raise WorkflowValidationError([f"flowPermission: {e}"]) from e


@dataclass
class WorkflowDefinition:
    """Declarative approval workflow.

    Attributes:
        name: Display name.
        root_node: The INITIATOR node at the top of the tree.
        id: Identifier shared by every version of the workflow.
        version: Version number, starting at 1.
        group_id: Workflow group used to organize definitions.
        description: Human-readable description.
        icon: Icon shown in the launcher.
        active: Inactive workflows cannot be started.
        cancelable: Whether running instances may be canceled.
        permission: Who may launch the workflow.
        flow_admin_ids: Workflow administrators, used as fallback assignees.
        form_fields: Form the initiator fills in.
        created_at: When this version was written.

    Example:
        >>> definition = WorkflowDefinition(
        ...     name="Expense",
        ...     root_node=InitiatorNode(
        ...         name="start",
        ...         child_node=ApprovalNode(
        ...             name="manager",
        ...             assignees=[Assignee(reference_id=None, assignee_type=AssigneeType.SUPERIOR, layer=1,
        ...                                 layer_type=LayerType.UP)],
        ...         ),
        ...     ),
        ... )
    """

    name: str
    root_node: Node
    id: UUID = field(default_factory=uuid4)
    version: int = 1
    group_id: str | None = None
    description: str = ""
    icon: str | None = None
    active: bool = True
    cancelable: bool = True
    permission: FlowPermission = field(default_factory=FlowPermission)
    flow_admin_ids: list[str] = field(default_factory=list)
    form_fields: list[FormField] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the definition to its wire form."""
        return {
            "id": str(self.id),
            "name": self.name,
            "version": self.version,
            "groupId": self.group_id,
            "description": self.description,
            "icon": self.icon,
            "active": self.active,
            "cancelable": self.cancelable,
            "flowPermission": self.permission.to_dict(),
            "flowAdminIds": list(self.flow_admin_ids),
            "flowWidgets": [form_field_to_dict(f) for f in self.form_fields],
            "nodeConfig": node_to_dict(self.root_node),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowDefinition:
        """Build a definition from its wire form.

        ``id`` and ``version`` are optional; a new id is generated when absent.

        Raises:
            WorkflowValidationError: If the node tree or permission is malformed.
            FormValidationError: If a form field has an unknown type.
        """
        if not data.get("name"):
            raise WorkflowValidationError(["Workflow name is required"])
        if not data.get("nodeConfig"):
            raise WorkflowValidationError(["Workflow nodeConfig is required"])
        kwargs: dict[str, Any] = {}
        if data.get("id"):
            kwargs["id"] = UUID(str(data["id"]))
        return cls(
            name=data["name"],
            root_node=node_from_dict(data["nodeConfig"]),
            version=int(data.get("version") or 1),
            group_id=data.get("groupId"),
            description=data.get("description") or "",
            icon=data.get("icon"),
            active=bool(data.get("active", True)),
            cancelable=bool(data.get("cancelable", True)),
            permission=FlowPermission.from_dict(data.get("flowPermission")),
            flow_admin_ids=list(data.get("flowAdminIds") or []),
            form_fields=form_fields_from_dict(data.get("flowWidgets")),
            **kwargs,
        )

    def to_mermaid(self) -> str:
        """Generate a MermaidJS graph representation of the node tree.

        Router branches that run out of nodes rejoin at the router's child.

        Returns:
            MermaidJS graph definition as a string.

        Example:
            >>> print(definition.to_mermaid())
            graph TD
                n0([start])
                n1{{manager}}
                n0 --> n1
                n1 --> END((end))
        """
        lines = ["graph TD"]
        ids: dict[int, str] = {}

        def node_id(node: Node) -> str:
            return ids.setdefault(id(node), f"n{len(ids)}")

        def declare(node: Node) -> None:
            label = node.name.replace('"', "")
            match node:
                case InitiatorNode():
                    shape = f"([{label}])"
                case ApprovalNode():
                    shape = f"{{{{{label}}}}}"
                case CopyNode():
                    shape = f"[/{label}/]"
                case ConditionNode():
                    shape = f"[{label}]"
                case RouterNode():
                    shape = f"{{{label}}}"
            lines.append(f"    {node_id(node)}{shape}")

        def walk(node: Node, rejoin: str, label: str = "") -> str:
            declare(node)
            current = node_id(node)
            after = rejoin
            if node.child_node is not None:
                after = walk(node.child_node, rejoin)
            if isinstance(node, RouterNode):
                branches = sorted(node.condition_nodes, key=lambda n: getattr(n, "priority_level", None) or 0)
                for branch in branches:
                    target = walk(branch, after)
                    lines.append(f"    {current} -->|P{getattr(branch, 'priority_level', '') or ''}| {target}")
                lines.append(f"    {current} -->|otherwise| {after}")
            else:
                lines.append(f"    {current} --> {after}")
            return current

        walk(self.root_node, "END((end))")
        return "\n".join(lines)

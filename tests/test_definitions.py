"""Tests for workflow definitions and the definition service."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from litestar_approvals.core.definition import FlowPermission, PermittedInitiator, WorkflowDefinition
from litestar_approvals.core.directory import DirectoryUser
from litestar_approvals.core.forms import FieldType, FormField
from litestar_approvals.core.nodes import ApprovalNode, InitiatorNode
from litestar_approvals.core.types import ConditionOperator, FlowPermissionType, InitiatorType
from litestar_approvals.exceptions import FormValidationError, WorkflowNotFoundError, WorkflowValidationError

if TYPE_CHECKING:
    from litestar_approvals.engine.definitions import DefinitionService


@pytest.mark.unit
class TestWorkflowDefinitionWireFormat:
    """Tests for WorkflowDefinition.to_dict / from_dict."""

    def test_round_trip(self, expense_definition: WorkflowDefinition) -> None:
        """Test that the wire form restores an equal definition."""
        data = expense_definition.to_dict()

        restored = WorkflowDefinition.from_dict(data)

        assert data["groupId"] == "finance"
        assert data["flowWidgets"][0]["type"] == "MONEY"
        assert data["nodeConfig"]["type"] == "INITIATOR"
        assert restored.id == expense_definition.id
        assert restored.root_node == expense_definition.root_node
        assert restored.form_fields == expense_definition.form_fields
        assert restored.flow_admin_ids == ["admin"]

    def test_minimal_payload(self) -> None:
        """Test defaults for an id-less designer payload."""
        definition = WorkflowDefinition.from_dict(
            {
                "name": "Leave",
                "nodeConfig": {
                    "name": "start",
                    "type": "INITIATOR",
                    "childNode": {
                        "name": "boss",
                        "type": "APPROVAL",
                        "assignees": [{"assigneeType": "SUPERIOR", "layer": 1, "layerType": 0}],
                    },
                },
            }
        )

        assert definition.version == 1
        assert definition.active is True
        assert definition.cancelable is True
        assert definition.permission.type is FlowPermissionType.ALL
        assert definition.form_fields == []
        assert isinstance(definition.root_node.child_node, ApprovalNode)

    @pytest.mark.parametrize(
        ("payload", "message"),
        [
            ({"nodeConfig": {"name": "start", "type": "INITIATOR"}}, "name is required"),
            ({"name": "x"}, "nodeConfig is required"),
            (
                {"name": "x", "nodeConfig": {"name": "start", "type": "INITIATOR"}, "flowPermission": {"type": 9}},
                "flowPermission",
            ),
        ],
    )
    def test_invalid_payloads(self, payload: dict, message: str) -> None:
        """Test that malformed payloads are rejected."""
        with pytest.raises(WorkflowValidationError, match=message):
            WorkflowDefinition.from_dict(payload)


@pytest.mark.unit
class TestFlowPermission:
    """Tests for initiator permission checks."""

    def test_specific(self) -> None:
        """Test user, department and role entries."""
        permission = FlowPermission(
            type=FlowPermissionType.SPECIFIC,
            initiators=[
                PermittedInitiator("alice"),
                PermittedInitiator("eng", InitiatorType.DEPARTMENT),
                PermittedInitiator("finance", InitiatorType.ROLE),
            ],
        )

        assert permission.allows("alice") is True
        assert permission.allows("carol", DirectoryUser(id="carol", department_id="eng")) is True
        assert permission.allows("erin", DirectoryUser(id="erin", roles=["finance"])) is True
        assert permission.allows("bob", DirectoryUser(id="bob", department_id="platform")) is False
        assert permission.allows("ghost") is False

    def test_all_and_none(self) -> None:
        """Test the open and closed permission types."""
        assert FlowPermission().allows("anyone") is True
        assert FlowPermission(type=FlowPermissionType.NONE).allows("alice") is False

    def test_wire_form(self) -> None:
        """Test the permission wire form uses integer codes."""
        permission = FlowPermission(
            type=FlowPermissionType.SPECIFIC, initiators=[PermittedInitiator("eng", InitiatorType.DEPARTMENT)]
        )

        assert permission.to_dict() == {"type": 1, "initiators": [{"id": "eng", "type": 1}]}
        assert FlowPermission.from_dict(permission.to_dict()) == permission


@pytest.mark.unit
@pytest.mark.asyncio
class TestDefinitionService:
    """Tests for validated, versioned definition writes."""

    async def test_create(self, definition_service: DefinitionService, expense_definition: WorkflowDefinition) -> None:
        """Test that create stores version 1."""
        stored = await definition_service.create_definition(replace(expense_definition, version=7))

        assert stored.version == 1
        assert (await definition_service.get_definition(stored.id)).name == "Expense"

    async def test_designer_tree_reads_back_unchanged(self, definition_service: DefinitionService) -> None:
        """Test that node ids and offered operators survive a save and read."""
        node_config = {
            "id": "root-1",
            "name": "start",
            "type": "INITIATOR",
            "childNode": {
                "id": "node-2",
                "name": "amount_router",
                "type": "ROUTER",
                "conditionNodes": [
                    {
                        "id": "node-3",
                        "name": "big",
                        "type": "CONDITION",
                        "priorityLevel": 1,
                        "conditionGroups": [
                            {
                                "id": "group-1",
                                "conditions": [
                                    {"id": "x", "varName": "amount", "operator": 3, "val": [1000], "operators": [3, 4]}
                                ],
                            }
                        ],
                        "childNode": {
                            "id": "node-4",
                            "name": "ceo",
                            "type": "APPROVAL",
                            "assignees": [{"referenceId": "ceo", "assigneeType": "SPECIFIC_USER"}],
                            "approvalType": 1,
                        },
                    },
                    {
                        "id": "node-5",
                        "name": "small",
                        "type": "CONDITION",
                        "priorityLevel": 2,
                        "conditionGroups": [
                            {
                                "id": "group-2",
                                "conditions": [{"id": "y", "varName": "amount", "operator": 6, "val": [1000]}],
                            }
                        ],
                    },
                ],
                "childNode": {
                    "id": "node-6",
                    "name": "notify",
                    "type": "COPY",
                    "ccs": [{"referenceId": "erin", "assigneeType": "SPECIFIC_USER"}],
                },
            },
        }

        stored = await definition_service.create_definition(
            WorkflowDefinition.from_dict({"name": "Purchase", "nodeConfig": node_config})
        )
        loaded = await definition_service.get_definition(stored.id)

        assert loaded.to_dict()["nodeConfig"] == node_config
        [big, _] = loaded.root_node.child_node.condition_nodes
        assert big.condition_groups[0].conditions[0].operators == [ConditionOperator.GT, ConditionOperator.GE]

    async def test_create_invalid_tree(self, definition_service: DefinitionService) -> None:
        """Test that invalid trees are not stored."""
        definition = WorkflowDefinition(
            name="Broken", root_node=InitiatorNode(name="start", child_node=ApprovalNode(name="a", assignees=[]))
        )

        with pytest.raises(WorkflowValidationError):
            await definition_service.create_definition(definition)

        assert await definition_service.list_definitions() == []

    async def test_create_invalid_form(
        self, definition_service: DefinitionService, review_definition: WorkflowDefinition
    ) -> None:
        """Test that invalid forms are not stored."""
        definition = replace(
            review_definition, form_fields=[FormField(name="kind", label="Kind", type=FieldType.SINGLE_CHOICE)]
        )

        with pytest.raises(FormValidationError):
            await definition_service.create_definition(definition)

    async def test_update_writes_new_version(
        self,
        definition_service: DefinitionService,
        expense_definition: WorkflowDefinition,
        review_definition: WorkflowDefinition,
    ) -> None:
        """Test that updates keep earlier versions readable."""
        v1 = await definition_service.create_definition(expense_definition)

        v2 = await definition_service.update_definition(v1.id, replace(review_definition, name="Expense v2"))

        assert v2.id == v1.id
        assert v2.version == 2
        assert (await definition_service.get_definition(v1.id)).name == "Expense v2"
        assert (await definition_service.get_definition(v1.id, 1)).name == "Expense"
        assert [d.version for d in await definition_service.list_definitions()] == [2]

    async def test_update_invalid_keeps_current(
        self, definition_service: DefinitionService, expense_definition: WorkflowDefinition
    ) -> None:
        """Test that a rejected update leaves the stored definition unchanged."""
        v1 = await definition_service.create_definition(expense_definition)
        broken = replace(expense_definition, root_node=ApprovalNode(name="a", assignees=[]))

        with pytest.raises(WorkflowValidationError):
            await definition_service.update_definition(v1.id, broken)

        assert (await definition_service.get_definition(v1.id)).version == 1

    async def test_unknown_workflow(
        self, definition_service: DefinitionService, expense_definition: WorkflowDefinition
    ) -> None:
        """Test reads and updates of missing workflows and versions."""
        with pytest.raises(WorkflowNotFoundError):
            await definition_service.get_definition(uuid4())
        with pytest.raises(WorkflowNotFoundError):
            await definition_service.update_definition(uuid4(), expense_definition)

        stored = await definition_service.create_definition(expense_definition)
        with pytest.raises(WorkflowNotFoundError, match="version 3"):
            await definition_service.get_definition(stored.id, 3)

    async def test_list_by_group(
        self,
        definition_service: DefinitionService,
        expense_definition: WorkflowDefinition,
        review_definition: WorkflowDefinition,
    ) -> None:
        """Test listing latest versions, optionally filtered by group."""
        expense = await definition_service.create_definition(expense_definition)
        review = await definition_service.create_definition(review_definition)

        assert [d.id for d in await definition_service.list_definitions()] == [expense.id, review.id]
        assert [d.id for d in await definition_service.list_definitions("finance")] == [expense.id]

    async def test_deactivate(
        self, definition_service: DefinitionService, expense_definition: WorkflowDefinition
    ) -> None:
        """Test that deactivation applies to every version."""
        stored = await definition_service.create_definition(expense_definition)
        await definition_service.update_definition(stored.id, expense_definition)

        deactivated = await definition_service.deactivate_definition(stored.id)

        assert deactivated.active is False
        assert (await definition_service.get_definition(stored.id, 1)).active is False

"""Minimal example of litestar-approvals integration.

This example mounts the approvals API over in-memory stores with a small
organization and registers an expense workflow on startup:

    start -> direct manager -> amount router
                                 |- amount > 1000: any finance member
                                 '- otherwise: nothing extra
          -> copy to the finance lead

Run with:
    cd examples/minimal
    litestar run

Or:
    uvicorn app:app --reload

Then start an expense for ``alice``::

    curl -X POST localhost:8000/approvals/instances \\
        -H 'Content-Type: application/json' \\
        -d '{"workflow_id": "<id from /approvals/definitions>", "initiator_id": "alice", "form_data": {"amount": 2500}}'
"""

from __future__ import annotations

import logging

from litestar import Litestar, get

from litestar_approvals import (
    ApprovalsPlugin,
    ApprovalsPluginConfig,
    Department,
    DirectoryUser,
    InMemoryDirectory,
    WorkflowDefinition,
)

logger = logging.getLogger(__name__)

# =============================================================================
# Organization
# =============================================================================

directory = InMemoryDirectory(
    departments=[
        Department(id="hq", name="Headquarters", leader_id="ceo"),
        Department(id="eng", name="Engineering", parent_id="hq", leader_id="carol"),
    ],
    users=[
        DirectoryUser(id="ceo", name="Chief Executive", department_id="hq"),
        DirectoryUser(id="carol", name="Carol", department_id="eng", manager_id="ceo"),
        DirectoryUser(id="alice", name="Alice", department_id="eng", manager_id="carol"),
        DirectoryUser(id="bob", name="Bob", department_id="hq", manager_id="ceo", roles=["finance"]),
        DirectoryUser(id="erin", name="Erin", department_id="hq", manager_id="ceo", roles=["finance"]),
    ],
)

# =============================================================================
# Workflow Definition
# =============================================================================

# The same document a designer front end would POST to /approvals/definitions.
EXPENSE_WORKFLOW = {
    "name": "Expense claim",
    "groupId": "finance",
    "description": "Manager approval, finance review above 1000, finance lead in copy",
    "flowWidgets": [{"name": "amount", "label": "Amount", "type": "MONEY", "required": True, "unit": "EUR"}],
    "nodeConfig": {
        "name": "start",
        "type": "INITIATOR",
        "childNode": {
            "name": "manager",
            "type": "APPROVAL",
            "assignees": [{"assigneeType": "SUPERIOR", "layer": 1, "layerType": 0}],
            "childNode": {
                "name": "amount_router",
                "type": "ROUTER",
                "conditionNodes": [
                    {
                        "name": "large",
                        "type": "CONDITION",
                        "priorityLevel": 1,
                        "conditionGroups": [
                            {"conditions": [{"varName": "amount", "operator": 3, "val": [1000]}]},
                        ],
                        "childNode": {
                            "name": "finance",
                            "type": "APPROVAL",
                            "approvalType": 0,
                            "assignees": [{"assigneeType": "ROLE", "referenceId": "finance"}],
                        },
                    },
                    {
                        "name": "small",
                        "type": "CONDITION",
                        "priorityLevel": 2,
                        "conditionGroups": [
                            {"conditions": [{"varName": "amount", "operator": 6, "val": [1000]}]},
                        ],
                    },
                ],
                "childNode": {
                    "name": "notify",
                    "type": "COPY",
                    "ccs": [{"assigneeType": "SPECIFIC_USER", "referenceId": "erin"}],
                },
            },
        },
    },
}

# =============================================================================
# Application
# =============================================================================

approvals = ApprovalsPlugin(config=ApprovalsPluginConfig(directory=directory))


async def register_workflows() -> None:
    """Store the example workflow once the services exist."""
    definition = await approvals.definition_service.create_definition(WorkflowDefinition.from_dict(EXPENSE_WORKFLOW))
    logger.info("Registered workflow %s (%s)", definition.name, definition.id)


@get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


app = Litestar(
    route_handlers=[health_check],
    plugins=[approvals],
    on_startup=[register_workflows],
    debug=True,
)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

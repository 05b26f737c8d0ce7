"""Validated, versioned workflow definition writes and reads."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from litestar_approvals.core.forms import validate_form
from litestar_approvals.core.models import utcnow
from litestar_approvals.engine.validator import validate_definition
from litestar_approvals.exceptions import WorkflowNotFoundError

if TYPE_CHECKING:
    from uuid import UUID

    from litestar_approvals.core.definition import WorkflowDefinition
    from litestar_approvals.core.protocols import DefinitionStore

__all__ = ["DefinitionService"]

logger = logging.getLogger(__name__)


class DefinitionService:
    """Create, update and read workflow definitions.

    Every write is validated first. Updates never modify a stored version;
    they write the next version, so running instances keep resolving against
    the version they were started on.

    Attributes:
        definitions: The definition store.
    """

    def __init__(self, definitions: DefinitionStore) -> None:
        self.definitions = definitions

    @staticmethod
    def _validate(definition: WorkflowDefinition) -> None:
        validate_definition(definition.root_node)
        if definition.form_fields:
            validate_form(definition.form_fields)

    async def create_definition(self, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Validate and store version 1 of a new workflow.

        Raises:
            WorkflowValidationError: If the node tree or form is invalid.
        """
        self._validate(definition)
        stored = await self.definitions.add(replace(definition, version=1, created_at=utcnow()))
        logger.info("Created workflow %s (%s)", stored.id, stored.name)
        return stored

    async def update_definition(self, workflow_id: UUID, definition: WorkflowDefinition) -> WorkflowDefinition:
        """Validate and store the next version of an existing workflow.

        Args:
            workflow_id: The workflow to update.
            definition: The new content; its ``id`` and ``version`` are ignored.

        Returns:
            The newly stored version.

        Raises:
            WorkflowNotFoundError: If the workflow does not exist.
            WorkflowValidationError: If the node tree or form is invalid.
            ConcurrentUpdateError: If another update wrote the same version first.
        """
        current = await self.get_definition(workflow_id)
        self._validate(definition)
        stored = await self.definitions.add(
            replace(definition, id=workflow_id, version=current.version + 1, created_at=utcnow())
        )
        logger.info("Updated workflow %s to version %d", workflow_id, stored.version)
        return stored

    async def get_definition(self, workflow_id: UUID, version: int | None = None) -> WorkflowDefinition:
        """Return a definition version, the latest when ``version`` is None.

        Raises:
            WorkflowNotFoundError: If the workflow or version does not exist.
        """
        definition = await self.definitions.get(workflow_id, version)
        if definition is None:
            raise WorkflowNotFoundError(workflow_id, version)
        return definition

    async def list_definitions(self, group_id: str | None = None) -> list[WorkflowDefinition]:
        """Return the latest version of every workflow, optionally within one group."""
        return await self.definitions.list_latest(group_id)

    async def deactivate_definition(self, workflow_id: UUID) -> WorkflowDefinition:
        """Close a workflow for new instances. Running instances are unaffected.

        Raises:
            WorkflowNotFoundError: If the workflow does not exist.
        """
        await self.get_definition(workflow_id)
        await self.definitions.set_active(workflow_id, False)
        logger.info("Deactivated workflow %s", workflow_id)
        return await self.get_definition(workflow_id)

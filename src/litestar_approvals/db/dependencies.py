"""Request-scoped service providers backed by the database.

The services built here share the request's SQLAlchemy session, which is
injected as ``db_session`` by Litestar's ``SQLAlchemyPlugin``. Configure that
plugin with ``before_send_handler="autocommit"`` so each successful request
commits the work of one engine operation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession  # noqa: TC002 - needed for DI

from litestar_approvals.db.stores import SQLAlchemyDefinitionStore, SQLAlchemyInstanceStore, SQLAlchemyTaskStore
from litestar_approvals.engine.definitions import DefinitionService
from litestar_approvals.engine.service import ExecutionService

if TYPE_CHECKING:
    from collections.abc import Callable

    from litestar_approvals.config import ApprovalsConfig
    from litestar_approvals.core.directory import Directory
    from litestar_approvals.core.protocols import EventBus

__all__ = ["create_session_providers"]


def create_session_providers(
    directory: Directory,
    config: ApprovalsConfig,
    event_bus: EventBus | None = None,
) -> tuple[Callable[[AsyncSession], ExecutionService], Callable[[AsyncSession], DefinitionService]]:
    """Build dependency providers that construct services around ``db_session``.

    Args:
        directory: Organization directory used for assignee resolution.
        config: Engine configuration.
        event_bus: Optional receiver for lifecycle events.

    Returns:
        The execution service provider and the definition service provider.
    """

    def provide_execution_service(db_session: AsyncSession) -> ExecutionService:
        return ExecutionService(
            SQLAlchemyDefinitionStore(db_session),
            SQLAlchemyInstanceStore(db_session),
            SQLAlchemyTaskStore(db_session),
            directory,
            config,
            event_bus,
        )

    def provide_definition_service(db_session: AsyncSession) -> DefinitionService:
        return DefinitionService(SQLAlchemyDefinitionStore(db_session))

    return provide_execution_service, provide_definition_service

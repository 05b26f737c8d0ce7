"""Litestar plugin for approval workflow integration.

This module provides the ApprovalsPlugin for integrating litestar-approvals
with Litestar applications.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from litestar.di import Provide
from litestar.plugins import InitPluginProtocol

from litestar_approvals.config import ApprovalsConfig
from litestar_approvals.core.directory import InMemoryDirectory
from litestar_approvals.engine.definitions import DefinitionService
from litestar_approvals.engine.memory import InMemoryDefinitionStore, InMemoryInstanceStore, InMemoryTaskStore
from litestar_approvals.engine.service import ExecutionService

if TYPE_CHECKING:
    from litestar.config.app import AppConfig

    from litestar_approvals.core.directory import Directory
    from litestar_approvals.core.protocols import DefinitionStore, EventBus, InstanceStore, TaskStore

__all__ = ["ApprovalsPlugin", "ApprovalsPluginConfig"]


@dataclass
class ApprovalsPluginConfig:
    """Configuration for the ApprovalsPlugin.

    Attributes:
        directory: Organization directory used to resolve assignees. Defaults
            to an empty :class:`InMemoryDirectory`.
        engine_config: Engine behaviour such as the resolution fallback.
        event_bus: Optional receiver for lifecycle events.
        definition_store: Definition store. Defaults to an in-memory store.
        instance_store: Instance store. Defaults to an in-memory store.
        task_store: Task store. Defaults to an in-memory store.
        use_database: Build the services per request around the ``db_session``
            dependency provided by Litestar's ``SQLAlchemyPlugin``. The store
            attributes are ignored. Requires the [db] extra.
        enable_api: Whether to enable the REST API endpoints. Defaults to True.
        api_path_prefix: URL path prefix for all approval API endpoints.
            Defaults to "/approvals".
        api_guards: List of Litestar guards to apply to all approval API endpoints.
        api_tags: OpenAPI tags to apply to approval API endpoints.
        include_api_in_schema: Whether to include API endpoints in OpenAPI schema.
            Defaults to True.
    """

    directory: Directory | None = None
    engine_config: ApprovalsConfig = field(default_factory=ApprovalsConfig)
    event_bus: EventBus | None = None
    definition_store: DefinitionStore | None = None
    instance_store: InstanceStore | None = None
    task_store: TaskStore | None = None
    use_database: bool = False
    enable_api: bool = True
    api_path_prefix: str = "/approvals"
    api_guards: list[Any] = field(default_factory=list)
    api_tags: list[str] = field(default_factory=lambda: ["Approvals"])
    include_api_in_schema: bool = True


class ApprovalsPlugin(InitPluginProtocol):
    """Litestar plugin for approval workflows.

    This plugin provides the :class:`ExecutionService` as the
    ``approvals_service`` dependency and the :class:`DefinitionService` as the
    ``definition_service`` dependency, and mounts the REST API.

    Example:
        In-memory stores with a directory::

            from litestar import Litestar
            from litestar_approvals import ApprovalsPlugin, ApprovalsPluginConfig, InMemoryDirectory

            directory = InMemoryDirectory(users=[...], departments=[...])
            app = Litestar(plugins=[ApprovalsPlugin(config=ApprovalsPluginConfig(directory=directory))])

        Database-backed stores::

            from litestar.plugins.sqlalchemy import SQLAlchemyAsyncConfig, SQLAlchemyPlugin

            db_config = SQLAlchemyAsyncConfig(
                connection_string="sqlite+aiosqlite:///approvals.db",
                before_send_handler="autocommit",
                create_all=True,
            )
            app = Litestar(
                plugins=[
                    SQLAlchemyPlugin(config=db_config),
                    ApprovalsPlugin(config=ApprovalsPluginConfig(directory=directory, use_database=True)),
                ]
            )
    """

    __slots__ = ("_config", "_definition_service", "_execution_service")

    def __init__(self, config: ApprovalsPluginConfig | None = None) -> None:
        """Initialize the plugin.

        Args:
            config: Optional configuration for the plugin.
        """
        self._config = config or ApprovalsPluginConfig()
        self._execution_service: ExecutionService | None = None
        self._definition_service: DefinitionService | None = None

    @property
    def execution_service(self) -> ExecutionService:
        """Get the shared execution service.

        Raises:
            RuntimeError: If accessed before plugin initialization or when the
                services are built per request from the database session.
        """
        if self._execution_service is None:
            msg = "ApprovalsPlugin has no shared execution service. Access it after app startup without use_database."
            raise RuntimeError(msg)
        return self._execution_service

    @property
    def definition_service(self) -> DefinitionService:
        """Get the shared definition service.

        Raises:
            RuntimeError: If accessed before plugin initialization or when the
                services are built per request from the database session.
        """
        if self._definition_service is None:
            msg = "ApprovalsPlugin has no shared definition service. Access it after app startup without use_database."
            raise RuntimeError(msg)
        return self._definition_service

    def on_app_init(self, app_config: AppConfig) -> AppConfig:
        """Initialize the plugin when the Litestar app starts.

        This method:
        1. Builds the services, or per-request providers when ``use_database`` is set
        2. Adds dependency providers to the app config
        3. Optionally registers REST API controllers and the exception handler

        Args:
            app_config: The Litestar application configuration.

        Returns:
            The modified application configuration.
        """
        config = self._config
        directory = config.directory if config.directory is not None else InMemoryDirectory()

        if config.use_database:
            from litestar_approvals.db.dependencies import create_session_providers

            provide_execution, provide_definitions = create_session_providers(
                directory, config.engine_config, config.event_bus
            )
        else:
            definitions = config.definition_store or InMemoryDefinitionStore()
            self._definition_service = DefinitionService(definitions)
            self._execution_service = ExecutionService(
                definitions,
                config.instance_store or InMemoryInstanceStore(),
                config.task_store or InMemoryTaskStore(),
                directory,
                config.engine_config,
                config.event_bus,
            )

            def provide_execution() -> ExecutionService:
                return self._execution_service  # type: ignore[return-value]

            def provide_definitions() -> DefinitionService:
                return self._definition_service  # type: ignore[return-value]

        app_config.dependencies["approvals_service"] = Provide(provide_execution, sync_to_thread=False)
        app_config.dependencies["definition_service"] = Provide(provide_definitions, sync_to_thread=False)

        if config.enable_api:
            from litestar import Router

            from litestar_approvals.exceptions import ApprovalsError
            from litestar_approvals.web.controllers import DefinitionController, InstanceController, TaskController
            from litestar_approvals.web.exceptions import approvals_exception_handler

            approvals_router = Router(
                path=config.api_path_prefix,
                route_handlers=[DefinitionController, InstanceController, TaskController],
                guards=config.api_guards,
                tags=config.api_tags,
                include_in_schema=config.include_api_in_schema,
            )
            app_config.route_handlers.append(approvals_router)
            app_config.exception_handlers[ApprovalsError] = approvals_exception_handler  # type: ignore[assignment]

        return app_config

"""Organization directory consumed by the assignee resolver.

The approval engine does not manage users, departments or roles. It reads
them through the :class:`Directory` protocol. :class:`InMemoryDirectory` is a
complete implementation backed by dictionaries, suitable for tests and for
embedding applications that load their organization chart at startup.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from litestar_approvals.core.types import LayerType

__all__ = ["Department", "Directory", "DirectoryUser", "InMemoryDirectory"]


@dataclass
class DirectoryUser:
    """A user as seen by the approval engine.

    Attributes:
        id: Unique user identifier.
        name: Display name.
        department_id: The department the user belongs to.
        manager_id: Direct superior, if any.
        roles: Role ids the user holds.
        active: Inactive users cannot be assigned tasks.
    """

    id: str
    name: str = ""
    department_id: str | None = None
    manager_id: str | None = None
    roles: list[str] = field(default_factory=list)
    active: bool = True


@dataclass
class Department:
    """A node of the department hierarchy."""

    id: str
    name: str = ""
    parent_id: str | None = None
    leader_id: str | None = None


@runtime_checkable
class Directory(Protocol):
    """Read-only view of the organization."""

    async def get_user(self, user_id: str) -> DirectoryUser | None:
        """Return the user, or None if unknown."""
        ...

    async def get_department_leader(self, department_id: str, layer: int, layer_type: LayerType) -> str | None:
        """Return the leader of the department ``layer`` levels along the hierarchy.

        Args:
            department_id: The department to start from (usually the initiator's).
            layer: 1-based level. With ``UP``, layer 1 is ``department_id`` itself
                and higher layers walk toward the root. With ``DOWN``, layer 1 is
                the root department and higher layers walk toward ``department_id``.
            layer_type: Counting direction.

        Returns:
            The leader's user id, or None if that level does not exist or has no leader.
        """
        ...

    async def get_users_with_role(self, role_id: str) -> list[str]:
        """Return the ids of active users holding the role."""
        ...

    async def get_manager_chain(self, user_id: str) -> list[str]:
        """Return the user's superiors, nearest first."""
        ...


class InMemoryDirectory:
    """Dictionary-backed :class:`Directory`.

    Example:
        >>> directory = InMemoryDirectory()
        >>> directory.add_department(Department(id="eng", leader_id="carol"))
        >>> directory.add_user(DirectoryUser(id="alice", department_id="eng", manager_id="carol"))
    """

    def __init__(
        self,
        users: list[DirectoryUser] | None = None,
        departments: list[Department] | None = None,
    ) -> None:
        self.users: dict[str, DirectoryUser] = {}
        self.departments: dict[str, Department] = {}
        for department in departments or []:
            self.add_department(department)
        for user in users or []:
            self.add_user(user)

    def add_user(self, user: DirectoryUser) -> DirectoryUser:
        self.users[user.id] = user
        return user

    def add_department(self, department: Department) -> Department:
        self.departments[department.id] = department
        return department

    def _department_path(self, department_id: str) -> list[Department]:
        """The department followed by its ancestors up to the root."""
        path: list[Department] = []
        seen: set[str] = set()
        current = self.departments.get(department_id)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            path.append(current)
            current = self.departments.get(current.parent_id) if current.parent_id else None
        return path

    async def get_user(self, user_id: str) -> DirectoryUser | None:
        return self.users.get(user_id)

    async def get_department_leader(self, department_id: str, layer: int, layer_type: LayerType) -> str | None:
        path = self._department_path(department_id)
        if layer_type is LayerType.DOWN:
            path.reverse()
        if layer < 1 or layer > len(path):
            return None
        return path[layer - 1].leader_id

    async def get_users_with_role(self, role_id: str) -> list[str]:
        return [user.id for user in self.users.values() if user.active and role_id in user.roles]

    async def get_manager_chain(self, user_id: str) -> list[str]:
        chain: list[str] = []
        seen = {user_id}
        user = self.users.get(user_id)
        while user is not None and user.manager_id and user.manager_id not in seen:
            chain.append(user.manager_id)
            seen.add(user.manager_id)
            user = self.users.get(user.manager_id)
        return chain

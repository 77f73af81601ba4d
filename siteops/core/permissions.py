"""Role-to-capability mapping for task actions."""

from enum import StrEnum

from siteops.domain.user import UserRole


class Capability(StrEnum):
    """Actions a worker may be entitled to perform on tasks."""

    CLAIM_TASKS = "claim_tasks"
    HANDLE_TASKS = "handle_tasks"  # hold a claimed task, e.g. as a transfer target
    FORCE_COMPLETE = "force_complete"
    OVERRIDE_PHOTO_REQUIREMENT = "override_photo_requirement"
    BYPASS_ASSIGNEE = "bypass_assignee"
    TRANSFER_TASKS = "transfer_tasks"
    CREATE_TASKS = "create_tasks"
    MANAGE_TASKS = "manage_tasks"


_SUPERVISOR: frozenset[Capability] = frozenset(
    {
        Capability.FORCE_COMPLETE,
        Capability.OVERRIDE_PHOTO_REQUIREMENT,
        Capability.BYPASS_ASSIGNEE,
        Capability.TRANSFER_TASKS,
        Capability.CREATE_TASKS,
        Capability.MANAGE_TASKS,
    }
)

_FLOOR: frozenset[Capability] = frozenset({Capability.CLAIM_TASKS, Capability.HANDLE_TASKS})

_ROLE_CAPABILITIES: dict[UserRole, frozenset[Capability]] = {
    UserRole.EMPLOYEE: _FLOOR,
    UserRole.STORE_MANAGER: _FLOOR | _SUPERVISOR,
    UserRole.ADMIN: _SUPERVISOR,
    UserRole.MASTER_ADMIN: _SUPERVISOR,
}


def capabilities_of(role: UserRole | str) -> frozenset[Capability]:
    """Return the capability set for a role. Unknown roles get nothing."""
    try:
        return _ROLE_CAPABILITIES[UserRole(role)]
    except ValueError:
        return frozenset()


def has_capability(role: UserRole | str, capability: Capability) -> bool:
    return capability in capabilities_of(role)

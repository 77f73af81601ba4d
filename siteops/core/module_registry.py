"""Module registry for managing feature modules."""

from typing import ClassVar

from siteops.core.module import Module, ScheduledJob


class _RegistryState:
    """Singleton state for module registry."""

    modules: ClassVar[dict[str, Module]] = {}


_registry = _RegistryState()


def register_module(module: Module) -> None:
    """Register a module in the registry.

    Raises:
        ValueError: If a module with the same name is already registered
    """
    if module.name in _registry.modules:
        msg = f"Module '{module.name}' is already registered"
        raise ValueError(msg)
    _registry.modules[module.name] = module


def register_default_modules() -> None:
    """Register the built-in feature modules, skipping any already present."""
    from siteops.modules.sites import SitesModule
    from siteops.modules.tasks import TasksModule

    # Sites first: tasks reference sites and workers
    for module in (SitesModule(), TasksModule()):
        if module.name not in _registry.modules:
            register_module(module)


def get_modules() -> dict[str, Module]:
    """Get all registered modules."""
    return dict(_registry.modules)


def get_module(name: str) -> Module | None:
    """Get a specific module by name, or None."""
    return _registry.modules.get(name)


def get_all_table_schemas() -> dict[str, str]:
    """Get all table schemas from registered modules.

    Returns:
        Dictionary mapping table names to CREATE TABLE SQL statements
    """
    all_schemas: dict[str, str] = {}
    for module in _registry.modules.values():
        for table_name, schema in module.get_table_schemas().items():
            if table_name in all_schemas:
                msg = f"Duplicate table schema '{table_name}' from module '{module.name}'"
                raise ValueError(msg)
            all_schemas[table_name] = schema
    return all_schemas


def get_all_indexes() -> list[str]:
    """Get all CREATE INDEX statements from registered modules."""
    all_indexes: list[str] = []
    for module in _registry.modules.values():
        all_indexes.extend(module.get_indexes())
    return all_indexes


def get_all_scheduled_jobs() -> list[ScheduledJob]:
    """Get all scheduled jobs from registered modules."""
    jobs: list[ScheduledJob] = []
    for module in _registry.modules.values():
        jobs.extend(module.get_scheduled_jobs())
    return jobs

"""Site and worker service for lookups and record creation."""

import logging

from siteops.core import db_client
from siteops.core.config import Constants
from siteops.core.errors import NotFoundError
from siteops.core.logging import span
from siteops.domain.create_models import SiteCreate, WorkerCreate
from siteops.domain.site import Site
from siteops.domain.user import MANAGER_ROLES, UserRole, Worker


logger = logging.getLogger(__name__)


async def create_site(*, params: SiteCreate) -> Site:
    """Create a site record."""
    with span("site_service.create_site"):
        record = await db_client.create_record(collection="sites", data=params.model_dump(mode="json"))
        logger.info("Created site", extra={"site_id": record["id"], "site_name": params.name})
        return Site(**record)


async def get_site(*, site_id: str) -> Site:
    """Get a site by ID.

    Raises:
        NotFoundError: If the site does not exist
    """
    try:
        record = await db_client.get_record(collection="sites", record_id=site_id)
    except KeyError as e:
        raise NotFoundError(f"Site not found: {site_id}") from e
    return Site(**record)


async def list_active_sites() -> list[Site]:
    """Return every active site."""
    records = await db_client.list_records(
        collection="sites", per_page=Constants.LIST_LIMIT, filter_query='is_active = "true"'
    )
    return [Site(**r) for r in records]


async def create_worker(*, params: WorkerCreate) -> Worker:
    """Create a worker record."""
    with span("site_service.create_worker"):
        record = await db_client.create_record(collection="workers", data=params.model_dump(mode="json"))
        logger.info("Created worker", extra={"worker_id": record["id"], "role": params.role})
        return Worker(**record)


async def get_worker(*, worker_id: str) -> Worker:
    """Get a worker by ID.

    Raises:
        NotFoundError: If the worker does not exist
    """
    try:
        record = await db_client.get_record(collection="workers", record_id=worker_id)
    except KeyError as e:
        raise NotFoundError(f"Worker not found: {worker_id}") from e
    return Worker(**record)


async def list_site_managers(*, site_id: str) -> list[Worker]:
    """Active managers responsible for a site: its store managers plus every admin."""
    role_clause = " || ".join(f'role = "{role}"' for role in MANAGER_ROLES)
    records = await db_client.list_records(
        collection="workers",
        per_page=Constants.LIST_LIMIT,
        filter_query=f'is_active = "true" && ({role_clause})',
    )
    managers = []
    for record in records:
        worker = Worker(**record)
        if worker.role != UserRole.STORE_MANAGER or worker.site_id == site_id:
            managers.append(worker)
    return managers

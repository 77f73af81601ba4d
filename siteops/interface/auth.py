"""Bearer-token identity for API callers."""

import logging
from typing import Annotated

from fastapi import Depends, Header
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from siteops.core.config import settings
from siteops.core.errors import AuthenticationError, NotFoundError
from siteops.domain.user import Worker
from siteops.modules.sites import service as site_service


logger = logging.getLogger(__name__)

serializer = URLSafeTimedSerializer(str(settings.secret_key), salt="worker-access")


def issue_access_token(worker_id: str) -> str:
    """Sign a worker ID into an access token."""
    return serializer.dumps(worker_id)


def read_access_token(token: str) -> str:
    """Return the worker ID inside a token.

    Raises:
        AuthenticationError: If the token is expired or tampered with
    """
    try:
        return serializer.loads(token, max_age=settings.access_token_max_age_seconds)
    except SignatureExpired as e:
        raise AuthenticationError("Access token expired") from e
    except BadSignature as e:
        raise AuthenticationError("Invalid access token") from e


async def get_current_worker(authorization: Annotated[str | None, Header()] = None) -> Worker:
    """Resolve the calling worker from an `Authorization: Bearer <token>` header."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationError("Missing bearer token")

    worker_id = read_access_token(authorization[7:].strip())
    try:
        worker = await site_service.get_worker(worker_id=worker_id)
    except NotFoundError as e:
        logger.warning("auth_unknown_worker", extra={"worker_id": worker_id})
        raise AuthenticationError("Unknown worker") from e

    if not worker.is_active:
        raise AuthenticationError("Worker account is inactive")
    return worker


CurrentWorker = Annotated[Worker, Depends(get_current_worker)]

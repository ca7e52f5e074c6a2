"""
Process-wide backend, manager index and service, created on first use.
"""
from typing import Optional
import logging

from timekeeper.access import ManagerIndex
from timekeeper.config import settings
from timekeeper.integrations.base import Backend, get_backend
from timekeeper.service import TimesheetService

# Registers the backends with the registry
from timekeeper.integrations import appwrite as _appwrite  # noqa: F401
from timekeeper.integrations import memory as _memory  # noqa: F401

logger = logging.getLogger(__name__)

_backend: Optional[Backend] = None
_service: Optional[TimesheetService] = None
_index: Optional[ManagerIndex] = ManagerIndex() if settings.MANAGER_INDEX_ENABLED else None


def get_index() -> Optional[ManagerIndex]:
    return _index


def get_backend_instance() -> Backend:
    global _backend
    if _backend is None:
        _backend = get_backend(settings.BACKEND)
        logger.info(f"Using {settings.BACKEND} backend")
    return _backend


def get_service() -> TimesheetService:
    global _service
    if _service is None:
        _service = TimesheetService(get_backend_instance(), index=_index)
    return _service


async def shutdown() -> None:
    global _backend, _service
    if _backend is not None:
        await _backend.aclose()
    _backend = None
    _service = None

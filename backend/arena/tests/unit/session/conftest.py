import pytest

from arena.session.manager import SessionManager

from .helpers import SHORT_GRACE_SECONDS


@pytest.fixture
async def manager(session_manager):
    yield session_manager
    await session_manager.shutdown()


@pytest.fixture
async def short_grace_manager(results_service):
    """SessionManager whose empty sessions expire almost immediately."""
    manager = SessionManager(results_service.make_sink(), grace_seconds=SHORT_GRACE_SECONDS)
    yield manager
    await manager.shutdown()

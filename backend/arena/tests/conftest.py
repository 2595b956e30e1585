import random

import pytest

from arena.messaging.router import MessageRouter
from arena.server.app import create_app
from arena.server.settings import ArenaServerSettings
from arena.session.manager import SessionManager
from arena.session.room_code import RoomCodeAllocator
from arena.tests.mocks import MockConnection, ResultsServiceStub
from arena.tests.mocks.results import RESULTS_URL


@pytest.fixture
def results_service():
    return ResultsServiceStub()


@pytest.fixture
def session_manager(results_service):
    return SessionManager(
        results_service.make_sink(),
        allocator=RoomCodeAllocator(random.Random(42)),
    )


@pytest.fixture
def message_router(session_manager):
    return MessageRouter(session_manager)


@pytest.fixture
def mock_connection():
    return MockConnection()


@pytest.fixture
def settings():
    return ArenaServerSettings(results_url=RESULTS_URL)


@pytest.fixture
def app(settings, session_manager, message_router):
    return create_app(settings=settings, session_manager=session_manager, message_router=message_router)

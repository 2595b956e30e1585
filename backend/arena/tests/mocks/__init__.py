from arena.tests.mocks.connection import MockConnection
from arena.tests.mocks.results import ResultsServiceStub

__all__ = ["MockConnection", "ResultsServiceStub"]

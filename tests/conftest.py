import pytest

from pgstore.pool import QueryResult


class FakeDriverError(Exception):
    """Stands in for a psycopg error carrying a SQLSTATE."""

    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


class FakeClient:
    def __init__(self, pool, backend_pid):
        self._pool = pool
        self.backend_pid = backend_pid
        self.executed = []
        self.released = False

    async def execute(self, query):
        self.executed.append(query)
        return self._pool.respond(query)

    async def release(self):
        self.released = True
        self._pool.released.append(self)


class FakePool:
    def __init__(self):
        self.executed = []
        self.probed = []
        self.checkouts = []
        self.released = []
        self.results = []
        self.default_result = QueryResult(rows=[], row_count=0, columns=[])
        self.opened = False
        self.closed = False
        self.close_error = None

    def queue(self, *results):
        """Results (or exceptions) handed out, in order, by the next statements."""
        self.results.extend(results)

    def respond(self, query):
        result = self.results.pop(0) if self.results else self.default_result
        if isinstance(result, BaseException):
            raise result
        return result

    async def execute(self, query):
        self.executed.append(query)
        return self.respond(query)

    async def probe(self, query):
        self.probed.append(query)
        return self.respond(query)

    async def checkout(self):
        client = FakeClient(self, backend_pid=1000 + len(self.checkouts))
        self.checkouts.append(client)
        return client

    async def open(self):
        self.opened = True

    async def close(self):
        if self.close_error is not None:
            raise self.close_error
        self.closed = True

    def stats(self):
        return {"size": 1, "available": 1, "waiting": 0}


@pytest.fixture
def fake_pool():
    return FakePool()


@pytest.fixture
def driver_error():
    return FakeDriverError

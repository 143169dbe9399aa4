class FakeCursor:
    def __init__(self, *, description=None, rows=None, rowcount=0, lastrowid=0, raise_on_execute=None):
        self.description = description
        self._rows = list(rows or [])
        self.rowcount = rowcount
        self.lastrowid = lastrowid
        self.raise_on_execute = raise_on_execute
        self.executed = []

    async def execute(self, query, args=None):
        self.executed.append(query)
        if self.raise_on_execute is not None:
            raise self.raise_on_execute

    async def fetchall(self):
        return tuple(self._rows)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeConnection:
    def __init__(self, cursor=None):
        self._cursor = cursor or FakeCursor()
        self.cursor_classes = []
        self.commit_calls = 0
        self.rollback_calls = 0

    def cursor(self, cursor_class=None):
        self.cursor_classes.append(cursor_class)
        return self._cursor

    async def commit(self):
        self.commit_calls += 1

    async def rollback(self):
        self.rollback_calls += 1


class _Acquire:
    def __init__(self, pool):
        self._pool = pool

    async def __aenter__(self):
        self._pool.acquire_calls += 1
        return self._pool.conn

    async def __aexit__(self, exc_type, exc, tb):
        self._pool.release_calls += 1
        return False


class RecordingPool:
    def __init__(self, conn=None, minsize=1, maxsize=10):
        self.conn = conn or FakeConnection()
        self.minsize = minsize
        self.maxsize = maxsize
        self.acquire_calls = 0
        self.release_calls = 0
        self.close_calls = 0
        self.wait_closed_calls = 0
        self.raise_on_close = None

    def acquire(self):
        return _Acquire(self)

    def close(self):
        self.close_calls += 1
        if self.raise_on_close is not None:
            raise self.raise_on_close

    async def wait_closed(self):
        self.wait_closed_calls += 1

"""
Shared fixtures for the preview worker tests.
"""

import threading
import time
from collections import defaultdict
from pathlib import Path

import pytest
import sqlalchemy as sa

from preview_worker.models.records import document_table


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands the queue uses."""

    def __init__(self):
        self.lists: dict[str, list[str]] = defaultdict(list)
        self.zsets: dict[str, dict[str, float]] = defaultdict(dict)
        self.published: list[tuple[str, str]] = []
        self._lock = threading.RLock()

    def lpush(self, key, *values):
        with self._lock:
            for value in values:
                self.lists[key].insert(0, value)
            return len(self.lists[key])

    def lmove(self, first_list, second_list, src="LEFT", dest="RIGHT"):
        with self._lock:
            source = self.lists[first_list]
            if not source:
                return None
            value = source.pop(0) if src == "LEFT" else source.pop()
            if dest == "LEFT":
                self.lists[second_list].insert(0, value)
            else:
                self.lists[second_list].append(value)
            return value

    def blmove(self, first_list, second_list, timeout, src="LEFT", dest="RIGHT"):
        value = self.lmove(first_list, second_list, src, dest)
        if value is None:
            time.sleep(min(float(timeout), 0.01))
        return value

    def lrem(self, key, count, value):
        with self._lock:
            items = self.lists[key]
            removed = 0
            while value in items and (count == 0 or removed < abs(count)):
                items.remove(value)
                removed += 1
            return removed

    def lrange(self, key, start, end):
        with self._lock:
            items = list(self.lists[key])
        return items[start:] if end == -1 else items[start:end + 1]

    def llen(self, key):
        with self._lock:
            return len(self.lists[key])

    def zadd(self, key, mapping):
        with self._lock:
            self.zsets[key].update(mapping)
            return len(mapping)

    def zrangebyscore(self, key, min_score, max_score):
        low = float(min_score)
        high = float(max_score)
        with self._lock:
            members = sorted(self.zsets[key].items(), key=lambda item: item[1])
        return [member for member, score in members if low <= score <= high]

    def zrem(self, key, *members):
        with self._lock:
            removed = 0
            for member in members:
                if self.zsets[key].pop(member, None) is not None:
                    removed += 1
            return removed

    def publish(self, channel, message):
        with self._lock:
            self.published.append((channel, message))
        return 0

    def ping(self):
        return True

    def close(self):
        pass

    def pipeline(self):
        return FakePipeline(self)

    def register_script(self, script):
        return FakeScript(self, script)

    def promote_due(self, delayed_key, wait_key, cutoff):
        """What the delayed-promotion script does, applied under the lock."""
        with self._lock:
            due = self.zrangebyscore(delayed_key, "-inf", cutoff)
            for raw in due:
                self.zsets[delayed_key].pop(raw, None)
                self.lists[wait_key].insert(0, raw)
            return len(due)


class FakeScript:
    """Registered Lua script; runs atomically like the real server would."""

    def __init__(self, client: FakeRedis, script: str):
        if "ZRANGEBYSCORE" not in script:
            raise NotImplementedError("FakeRedis only knows the delayed-promotion script")
        self._client = client
        self.script = script
        self.calls = 0
        self.error: Exception | None = None

    def __call__(self, keys=None, args=None, client=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        delayed_key, wait_key = keys
        return self._client.promote_due(delayed_key, wait_key, args[0])


class FakePipeline:
    """Buffers commands and runs them on ``execute``."""

    def __init__(self, client: FakeRedis):
        self._client = client
        self._commands = []

    def __getattr__(self, name):
        def queue_command(*args, **kwargs):
            self._commands.append((name, args, kwargs))
            return self
        return queue_command

    def execute(self):
        with self._client._lock:
            return [getattr(self._client, name)(*args, **kwargs) for name, args, kwargs in self._commands]


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def record_engine():
    """In-memory SQLite engine with one PENDING document record."""
    engine = sa.create_engine("sqlite://")
    metadata = sa.MetaData()
    table = document_table("plano_documento", metadata)
    metadata.create_all(engine)
    with engine.begin() as connection:
        connection.execute(
            sa.insert(table).values(
                id="doc-1",
                preview_status="PENDING",
                updated_at=sa.func.now(),
            )
        )
    yield engine, table
    engine.dispose()


def read_record(engine, table, document_id: str = "doc-1") -> dict:
    with engine.connect() as connection:
        row = connection.execute(sa.select(table).where(table.c.id == document_id)).mappings().one()
    return dict(row)


def write_file(path: Path, content: bytes = b"data") -> Path:
    path.write_bytes(content)
    return path

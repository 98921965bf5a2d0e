"""SupabaseJobStore against a small fake of the supabase-py query builder."""

import asyncio
from datetime import datetime
from types import SimpleNamespace

import pytest

from audioweaver.errors import ConfigurationError, StorageError
from audioweaver.jobs.models import JobStatus
from audioweaver.jobs.supabase_store import SupabaseJobStore


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.op = "select"
        self.payload = None
        self.filters = []
        self.ordering = None
        self.limit_to = None

    def select(self, *columns):
        self.op = "select"
        return self

    def insert(self, row):
        self.op, self.payload = "insert", row
        return self

    def update(self, payload):
        self.op, self.payload = "update", payload
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.ordering = (column, desc)
        return self

    def limit(self, count):
        self.limit_to = count
        return self

    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.client.executed.append((self.table, self.op))
        rows = self.client.tables.setdefault(self.table, [])
        if self.op == "insert":
            rows.append(dict(self.payload))
            return SimpleNamespace(data=[dict(self.payload)])
        if self.op == "update":
            hit = [row for row in rows if self._matches(row)]
            for row in hit:
                row.update(self.payload)
            return SimpleNamespace(data=[dict(row) for row in hit])
        if self.op == "delete":
            gone = [row for row in rows if self._matches(row)]
            self.client.tables[self.table] = [row for row in rows if not self._matches(row)]
            return SimpleNamespace(data=gone)

        hit = [dict(row) for row in rows if self._matches(row)]
        if self.ordering:
            column, desc = self.ordering
            hit.sort(key=lambda row: row[column], reverse=desc)
        if self.limit_to is not None:
            hit = hit[: self.limit_to]
        return SimpleNamespace(data=hit)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.executed = []

    def table(self, name):
        return FakeQuery(self, name)


class UnreachableSupabase:
    def table(self, name):
        raise ConnectionError("connection refused")


@pytest.fixture()
def client():
    return FakeSupabase()


@pytest.fixture()
def store(client):
    return SupabaseJobStore(client)


def test_job_round_trip_uses_upload_ids_column(store, client):
    async def scenario():
        job = await store.create_job(["u1", "u2"])
        return job, await store.get_job(job.id)

    job, fetched = asyncio.run(scenario())

    row = client.tables["processing_jobs"][0]
    assert row["upload_ids"] == ["u1", "u2"]
    assert "document_refs" not in row
    assert row["status"] == "pending"
    assert fetched.document_refs == ["u1", "u2"]
    assert fetched.id == job.id


def test_update_job_serializes_enum_and_datetime(store, client):
    async def scenario():
        job = await store.create_job(["u1"])
        return await store.update_job(
            job.id, status=JobStatus.COMPLETED, progress=100, completed_at=datetime(2024, 1, 2, 3, 4, 5)
        )

    updated = asyncio.run(scenario())

    row = client.tables["processing_jobs"][0]
    assert row["status"] == "completed"
    assert row["completed_at"] == "2024-01-02T03:04:05"
    assert updated.status == JobStatus.COMPLETED
    assert updated.progress == 100


def test_update_job_rejects_immutable_fields(store):
    with pytest.raises(ValueError):
        asyncio.run(store.update_job("id", context=None))


def test_summary_is_found_by_job(store, client):
    async def scenario():
        summary = await store.create_summary(
            job_id="job-1", title="T", description="D", text="body", audio_url="/audio/x.mp3"
        )
        return summary, await store.get_summary_by_job_id("job-1")

    summary, found = asyncio.run(scenario())

    assert client.tables["summaries"][0]["processing_job_id"] == "job-1"
    assert found.id == summary.id
    assert found.job_id == "job-1"


def test_get_uploads_preserves_requested_order(store):
    async def scenario():
        a = await store.create_upload("a.pdf", "/u/a.pdf", 1)
        b = await store.create_upload("b.pdf", "/u/b.pdf", 2)
        return await store.get_uploads([b.id, "missing", a.id])

    uploads = asyncio.run(scenario())

    assert [u.filename for u in uploads] == ["b.pdf", "a.pdf"]


def test_save_api_keys_keeps_a_single_pair(store, client):
    async def scenario():
        await store.save_api_keys("g1", "e1")
        await store.save_api_keys("g2", "e2")
        return await store.get_api_keys()

    keys = asyncio.run(scenario())

    assert len(client.tables["api_keys"]) == 1
    assert (keys.gemini, keys.elevenlabs) == ("g2", "e2")


def test_audio_notes_are_ordered_by_timestamp(store):
    async def scenario():
        await store.create_audio_note("s1", 40, "b")
        await store.create_audio_note("s1", 3, "a")
        return await store.list_audio_notes("s1")

    notes = asyncio.run(scenario())

    assert [n.text for n in notes] == ["a", "b"]


def test_client_failures_become_storage_errors():
    store = SupabaseJobStore(UnreachableSupabase())

    with pytest.raises(StorageError, match="get job"):
        asyncio.run(store.get_job("abc"))


def test_malformed_job_row_is_a_storage_error(store, client):
    client.tables["processing_jobs"] = [{"id": "j1", "status": "lost", "progress": 20, "upload_ids": []}]

    with pytest.raises(StorageError, match="malformed row"):
        asyncio.run(store.get_job("j1"))


def test_summary_row_without_job_reference_is_a_storage_error(store, client):
    client.tables["summaries"] = [
        {"id": "s1", "title": "T", "description": "D", "text": "t", "audio_url": "/audio/x.mp3"}
    ]

    with pytest.raises(StorageError):
        asyncio.run(store.get_summary("s1"))


def test_supabase_client_requires_service_credentials(monkeypatch):
    from audioweaver.db import supabase_client

    monkeypatch.setattr(supabase_client, "_client", None)
    monkeypatch.setattr(supabase_client.settings, "supabase_url", "")
    monkeypatch.setattr(supabase_client.settings, "supabase_service_role_key", "")

    with pytest.raises(ConfigurationError):
        supabase_client.get_supabase()

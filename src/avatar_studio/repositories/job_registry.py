"""Durable registry of in-flight generation jobs."""

import asyncio
import logging
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from src.avatar_studio.domain.generation import JobRecord
from src.avatar_studio.repositories.interfaces import (
    JobRegistryInterface,
    KeyValueStoreInterface,
)

logger = logging.getLogger(__name__)

_RECORDS = TypeAdapter(list[JobRecord])


class JobRegistry(JobRegistryInterface):
    """Key-value backed table mapping projects to remote task IDs.

    The whole collection is read, modified and written back on every
    mutation. The collection is bounded by the number of concurrently
    submitted jobs, so this stays cheap. Mutations are serialized with an
    asyncio.Lock so two generations finishing together cannot drop each
    other's changes.
    """

    def __init__(self, store: KeyValueStoreInterface, key: str = "active_tasks") -> None:
        """Initialize registry.

        Args:
            store: Durable key-value store
            key: Storage key holding the record list
        """
        self._store = store
        self._key = key
        self._lock = asyncio.Lock()

    async def _read(self) -> list[JobRecord]:
        """Read all records, treating undecodable data as empty."""
        raw = await self._store.load(self._key)
        if raw is None:
            return []
        try:
            return _RECORDS.validate_python(raw)
        except ValidationError as exc:
            logger.warning("Discarding unreadable job records: %s", exc)
            return []

    async def _write(self, records: list[JobRecord]) -> None:
        await self._store.save(self._key, _RECORDS.dump_python(records, mode="json"))

    async def add(self, record: JobRecord) -> None:
        """Store a record, replacing any record for the same project."""
        async with self._lock:
            records = [r for r in await self._read() if r.project_id != record.project_id]
            records.append(record)
            await self._write(records)
        logger.info(
            "Registered task %s for project %s", record.remote_task_id, record.project_id
        )

    async def remove(self, project_id: UUID) -> bool:
        """Delete the record for a project; a missing record is a no-op."""
        async with self._lock:
            records = await self._read()
            remaining = [r for r in records if r.project_id != project_id]
            if len(remaining) == len(records):
                return False
            await self._write(remaining)
        logger.info("Unregistered task for project %s", project_id)
        return True

    async def get(self, project_id: UUID) -> JobRecord | None:
        """Get the record for a project."""
        for record in await self._read():
            if record.project_id == project_id:
                return record
        return None

    async def all(self) -> list[JobRecord]:
        """Return every stored record."""
        return await self._read()

"""In-memory long-term memory store.

This module provides the MemoryStore, which keeps bills, documents,
subscriptions, appointments, preferences and task history for the agents,
with type-bucketed and query-based retrieval and context compaction.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Optional, Union
from uuid import uuid4

from errandforge.agents.errors import MemoryRecordNotFoundError
from errandforge.config import ErrandConfig, get_default_config
from errandforge.memory.embedding import Embedder, HashingEmbedder, cosine_similarity
from errandforge.memory.models import MemoryRecord, MemoryType
from errandforge.observability.logging import get_logger
from errandforge.observability.metrics import MetricsCollector

logger = get_logger(__name__)

_SHARED_TYPES = [MemoryType.PREFERENCE, MemoryType.TASK_HISTORY]

# Memory types an agent type is allowed to see during context compaction
RELEVANT_TYPES: dict[str, list[MemoryType]] = {
    "bill": [MemoryType.BILL, *_SHARED_TYPES],
    "document": [MemoryType.DOCUMENT, *_SHARED_TYPES],
    "subscription": [MemoryType.SUBSCRIPTION, *_SHARED_TYPES],
    "appointment": [MemoryType.APPOINTMENT, *_SHARED_TYPES],
    "deadline": [
        MemoryType.BILL,
        MemoryType.DOCUMENT,
        MemoryType.SUBSCRIPTION,
        MemoryType.APPOINTMENT,
        MemoryType.TASK_HISTORY,
    ],
    "dispatcher": list(MemoryType),
}


def relevant_types_for(agent_type: str) -> list[MemoryType]:
    """Get the memory types relevant to an agent type.

    Unknown agent types only see preferences and task history.
    """
    return list(RELEVANT_TYPES.get(agent_type, _SHARED_TYPES))


def _check_non_negative(name: str, value: Optional[int]) -> None:
    if value is not None and value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")


def content_to_text(content: Any) -> str:
    """Render opaque record content as text for embedding and previews."""
    if isinstance(content, str):
        return content
    return json.dumps(content, sort_keys=True, default=str)


class MemoryStore:
    """Thread-safe in-memory store of long-term memory records.

    Records live in a flat id map plus a per-type index; both are mutated
    together under one asyncio lock so the index always agrees with each
    record's ``memory_type``. Every read returns deep copies.

    Attributes:
        _records: Dictionary mapping record id to MemoryRecord
        _type_index: Dictionary mapping memory type to record ids
        _lock: Asyncio lock for atomic updates

    Example:
        >>> store = MemoryStore()
        >>> memory_id = await store.store(MemoryType.BILL, {"provider": "City Power"})
        >>> bills = await store.retrieve_by_type(MemoryType.BILL)
    """

    def __init__(
        self,
        embedder: Optional[Embedder] = None,
        metrics: Optional[MetricsCollector] = None,
        config: Optional[ErrandConfig] = None,
    ) -> None:
        """Initialize the memory store.

        Args:
            embedder: Embedder for content and queries (hashing embedder by default)
            metrics: Metrics collector to report stores and retrievals to
            config: Configuration (defaults when None)
        """
        self._config = config or get_default_config()
        self._embedder = embedder or HashingEmbedder(self._config.embedding_dimensions)
        self._metrics = metrics
        self._records: dict[str, MemoryRecord] = {}
        self._type_index: dict[MemoryType, set[str]] = {t: set() for t in MemoryType}
        self._lock = asyncio.Lock()

    async def store(
        self,
        memory_type: Union[MemoryType, str],
        content: Any,
        metadata: Optional[dict[str, Any]] = None,
    ) -> str:
        """Store a new memory record.

        Args:
            memory_type: Bucket for the record
            content: Record content
            metadata: Optional metadata

        Returns:
            Identifier of the stored record

        Raises:
            ValueError: If memory_type is not a known memory type
        """
        memory_type = MemoryType(memory_type)
        now = datetime.now(timezone.utc)
        record = MemoryRecord(
            id=f"mem-{uuid4().hex[:12]}",
            memory_type=memory_type,
            content=content,
            embedding=self._embedder.embed(content_to_text(content)),
            last_accessed=now,
            created_at=now,
            metadata=dict(metadata or {}),
        )

        async with self._lock:
            self._records[record.id] = record
            self._type_index[memory_type].add(record.id)

        logger.info("memory_stored", memory_id=record.id, memory_type=memory_type.value)
        if self._metrics:
            self._metrics.record_memory_stored(memory_type.value)
        return record.id

    async def retrieve_by_type(
        self, memory_type: Union[MemoryType, str], limit: Optional[int] = None
    ) -> list[MemoryRecord]:
        """Retrieve records of one type, most recently accessed first.

        Only the returned records have their access count and last access
        time updated.

        Args:
            memory_type: Bucket to read
            limit: Maximum number of records (all when None)

        Returns:
            Copies of the returned records

        Raises:
            ValueError: If limit is negative
        """
        _check_non_negative("limit", limit)
        memory_type = MemoryType(memory_type)
        async with self._lock:
            records = [self._records[i] for i in self._type_index[memory_type]]
            records.sort(key=lambda r: (r.last_accessed, r.created_at), reverse=True)
            if limit is not None:
                records = records[:limit]
            result = self._touch(records)

        logger.debug("memories_retrieved_by_type", memory_type=memory_type.value, count=len(result))
        if self._metrics:
            self._metrics.set_memory_retrieved(len(result))
        return result

    async def retrieve_by_query(self, query: str, limit: int = 5) -> list[MemoryRecord]:
        """Retrieve the records most similar to a text query.

        Args:
            query: Free-text query
            limit: Maximum number of records

        Returns:
            Copies of the best matching records, best first

        Raises:
            ValueError: If limit is negative
        """
        _check_non_negative("limit", limit)
        query_embedding = self._embedder.embed(query)
        async with self._lock:
            scored = [
                (cosine_similarity(query_embedding, r.embedding) if r.embedding else 0.0, r)
                for r in self._records.values()
            ]
            scored.sort(key=lambda pair: pair[0], reverse=True)
            result = self._touch([record for _, record in scored[:limit]])

        logger.debug("memories_retrieved_by_query", query=query, count=len(result))
        if self._metrics:
            self._metrics.set_memory_retrieved(len(result))
        return result

    async def retrieve_by_id(self, memory_id: str) -> Optional[MemoryRecord]:
        """Retrieve one record by id, None if it does not exist."""
        async with self._lock:
            record = self._records.get(memory_id)
            if record is None:
                return None
            return self._touch([record])[0]

    async def find_by_content_id(
        self, memory_type: Union[MemoryType, str], content_id: str
    ) -> Optional[MemoryRecord]:
        """Find the record of a type whose dict content has the given ``id``.

        When several records match, the most recently accessed one wins.
        Only that record has its access bookkeeping updated.
        """
        memory_type = MemoryType(memory_type)
        async with self._lock:
            matches = [
                record
                for record in (self._records[i] for i in self._type_index[memory_type])
                if isinstance(record.content, dict) and record.content.get("id") == content_id
            ]
            if not matches:
                return None
            best = max(matches, key=lambda r: (r.last_accessed, r.created_at))
            return self._touch([best])[0]

    async def compact_context_for_agent(
        self, agent_type: str, max_memories: Optional[int] = None
    ) -> list[MemoryRecord]:
        """Select the records most worth showing to an agent.

        Only memory types relevant to the agent type are considered. Records
        are ranked by ``(1 + access_count) * 0.5 ** (age / half_life)``,
        where age is the time since last access. This is a pure read and
        does not change access bookkeeping.

        Args:
            agent_type: Agent type (bill, document, deadline, dispatcher, ...)
            max_memories: Maximum number of records (configured default when None)

        Returns:
            Copies of at most max_memories records, best first

        Raises:
            ValueError: If max_memories is negative
        """
        if max_memories is None:
            max_memories = self._config.compaction_max_memories
        _check_non_negative("max_memories", max_memories)
        half_life_seconds = self._config.recency_half_life_hours * 3600
        now = datetime.now(timezone.utc)

        def score(record: MemoryRecord) -> float:
            age = max((now - record.last_accessed).total_seconds(), 0.0)
            return (1 + record.access_count) * 0.5 ** (age / half_life_seconds)

        async with self._lock:
            candidates = [
                self._records[memory_id]
                for memory_type in relevant_types_for(agent_type)
                for memory_id in self._type_index[memory_type]
            ]
            candidates.sort(key=score, reverse=True)
            compacted = [r.model_copy(deep=True) for r in candidates[:max_memories]]

        logger.debug(
            "context_compacted",
            agent_type=agent_type,
            total_memories=len(candidates),
            compacted_memories=len(compacted),
        )
        return compacted

    async def summarize(self, memory_ids: list[str]) -> str:
        """Build a text digest of records grouped by type.

        Unknown ids are ignored. Each type lists its record count and up to
        a configured number of content previews.

        Args:
            memory_ids: Records to summarize

        Returns:
            Digest text starting with "Memory Summary:"
        """
        preview_chars = self._config.summary_preview_chars
        max_per_type = self._config.summary_max_per_type

        async with self._lock:
            grouped: dict[MemoryType, list[MemoryRecord]] = {}
            for memory_id in memory_ids:
                record = self._records.get(memory_id)
                if record is not None:
                    grouped.setdefault(record.memory_type, []).append(record)

            lines = ["Memory Summary:"]
            for memory_type, records in grouped.items():
                lines.append("")
                lines.append(f"{memory_type.value.upper()} ({len(records)}):")
                for record in records[:max_per_type]:
                    text = content_to_text(record.content)
                    preview = text[:preview_chars] + ("..." if len(text) > preview_chars else "")
                    lines.append(f"  - {preview}")

        return "\n".join(lines) + "\n"

    async def update(
        self,
        memory_id: str,
        content: Any = None,
        metadata: Optional[dict[str, Any]] = None,
        memory_type: Optional[Union[MemoryType, str]] = None,
    ) -> MemoryRecord:
        """Update a record in place.

        New content replaces the old content and is re-embedded. Metadata is
        merged into the existing metadata. A new memory type moves the
        record to the new bucket in the same atomic step.

        Args:
            memory_id: Record to update
            content: Replacement content (unchanged when None)
            metadata: Metadata entries to merge
            memory_type: New bucket (unchanged when None)

        Returns:
            Copy of the updated record

        Raises:
            MemoryRecordNotFoundError: If the record does not exist
        """
        new_type = MemoryType(memory_type) if memory_type is not None else None
        embedding = self._embedder.embed(content_to_text(content)) if content is not None else None

        async with self._lock:
            record = self._records.get(memory_id)
            if record is None:
                raise MemoryRecordNotFoundError(memory_id)

            if content is not None:
                record.content = content
                record.embedding = embedding
            if metadata:
                record.metadata.update(metadata)
            if new_type is not None and new_type != record.memory_type:
                self._type_index[record.memory_type].discard(memory_id)
                self._type_index[new_type].add(memory_id)
                record.memory_type = new_type
            updated = record.model_copy(deep=True)

        logger.info("memory_updated", memory_id=memory_id)
        return updated

    async def delete(self, memory_id: str) -> bool:
        """Delete a record.

        Returns:
            True if the record existed and was deleted, False otherwise
        """
        async with self._lock:
            record = self._records.pop(memory_id, None)
            if record is None:
                return False
            self._type_index[record.memory_type].discard(memory_id)

        logger.info("memory_deleted", memory_id=memory_id)
        return True

    async def stats(self, top_n: Optional[int] = None) -> dict[str, Any]:
        """Get statistics about stored records.

        Args:
            top_n: Length of the most-accessed and oldest lists (configured default when None)

        Returns:
            Dictionary with total_memories, by_type counts, most_accessed
            and oldest_memories record copies
        """
        if top_n is None:
            top_n = self._config.stats_top_n
        _check_non_negative("top_n", top_n)
        async with self._lock:
            records = list(self._records.values())
            by_type = {t.value: len(ids) for t, ids in self._type_index.items() if ids}
            most_accessed = sorted(records, key=lambda r: r.access_count, reverse=True)[:top_n]
            oldest = sorted(records, key=lambda r: r.created_at)[:top_n]
            return {
                "total_memories": len(records),
                "by_type": by_type,
                "most_accessed": [r.model_copy(deep=True) for r in most_accessed],
                "oldest_memories": [r.model_copy(deep=True) for r in oldest],
            }

    async def clear(self) -> None:
        """Delete every record."""
        async with self._lock:
            self._records.clear()
            for ids in self._type_index.values():
                ids.clear()
        logger.info("memories_cleared")

    def _touch(self, records: list[MemoryRecord]) -> list[MemoryRecord]:
        now = datetime.now(timezone.utc)
        touched = []
        for record in records:
            record.access_count += 1
            record.last_accessed = now
            touched.append(record.model_copy(deep=True))
        return touched

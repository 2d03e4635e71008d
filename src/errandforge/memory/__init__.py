"""ErrandForge memory module.

Provides the long-term MemoryStore shared by all agents, with type-bucketed
and query-based retrieval and context compaction.
"""

from errandforge.memory.embedding import Embedder, HashingEmbedder
from errandforge.memory.models import MemoryRecord, MemoryType
from errandforge.memory.store import MemoryStore

__all__ = ["Embedder", "HashingEmbedder", "MemoryRecord", "MemoryType", "MemoryStore"]

"""Long-term memory: line store and deterministic patch engine."""

from memochat.memory.patch import MemoryPatchResult, RemoveOp, apply_memory_edits
from memochat.memory.store import MemoryStore

__all__ = ["MemoryPatchResult", "MemoryStore", "RemoveOp", "apply_memory_edits"]

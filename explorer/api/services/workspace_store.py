from cachetools import TTLCache
from datetime import datetime, timezone
from typing import Dict, Optional
from .models import WorkspaceSnapshot


class WorkspaceStore:
    """Last-loaded spec/schema/tabs per workspace, replaced wholesale on save.

    Connection descriptors are never part of a snapshot.
    """

    def __init__(self, max_size: int = 256, ttl: int = 86400):
        self.cache = TTLCache(maxsize=max_size, ttl=ttl)
        self.metrics = {"hits": 0, "misses": 0}

    def load(self, workspace_id: str) -> Optional[WorkspaceSnapshot]:
        value = self.cache.get(workspace_id)
        if value is None:
            self.metrics["misses"] += 1
        else:
            self.metrics["hits"] += 1
        return value

    def save(self, workspace_id: str, snapshot: WorkspaceSnapshot) -> WorkspaceSnapshot:
        stored = snapshot.model_copy(update={"updated_at": datetime.now(timezone.utc)})
        self.cache[workspace_id] = stored
        return stored

    def delete(self, workspace_id: str) -> bool:
        return self.cache.pop(workspace_id, None) is not None

    def stats(self) -> Dict[str, int]:
        return {**self.metrics, "size": len(self.cache)}

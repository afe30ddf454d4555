"""Per-run group cache shared by resolution, discovery and replication."""

from typing import Dict, Optional, Tuple

from ..models.group import Group

CacheKey = Tuple[str, str]


class GroupCache:
    """Maps ``(base_url, full_path)`` to the first group fetched for it.

    Entries are write-once: a later ``put`` for a known key keeps the
    original snapshot.
    """

    def __init__(self):
        self._groups: Dict[CacheKey, Group] = {}

    @staticmethod
    def _key(base_url: str, full_path: str) -> CacheKey:
        return base_url.rstrip('/'), full_path.strip('/')

    def get(self, base_url: str, full_path: str) -> Optional[Group]:
        return self._groups.get(self._key(base_url, full_path))

    def put(self, base_url: str, group: Group) -> Group:
        """Cache ``group`` unless its key is already present; return the cached one."""
        return self._groups.setdefault(self._key(base_url, group.full_path), group)


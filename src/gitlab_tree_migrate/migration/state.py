"""Durable per-repository migration status."""

import json
import os
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from ..models.repository import MigrationRecord


class MigrationStateStore:
    """Ordered list of migration records keyed by repository source URL.

    ``persist`` rewrites the whole file, so readers always see a complete
    list reflecting the latest attempted state. With ``path=None`` the
    store lives in memory only.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._records: Dict[str, MigrationRecord] = {}
        self.logger = logger.bind(component='MigrationStateStore')

    def load(self) -> List[MigrationRecord]:
        """Read records from the backing file, replacing the in-memory state.

        A missing file yields an empty list.
        """
        self._records = {}
        if self.path is None or not self.path.exists():
            return []

        with open(self.path, 'r', encoding='utf-8') as f:
            raw = json.load(f)

        for item in raw:
            record = MigrationRecord(**item)
            self._records[record.source_url] = record

        self.logger.debug(f'Loaded {len(self._records)} records from {self.path}')
        return self.records()

    def upsert(self, record: MigrationRecord) -> None:
        """Insert or replace the record for ``record.source_url``."""
        self._records[record.source_url] = record

    def get(self, source_url: str) -> Optional[MigrationRecord]:
        return self._records.get(source_url)

    def records(self) -> List[MigrationRecord]:
        return list(self._records.values())

    def persist(self) -> None:
        """Write all records to the backing file."""
        if self.path is None:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump([r.to_dict() for r in self._records.values()], f, indent=2)
        os.replace(tmp_path, self.path)

    def save(self, record: MigrationRecord) -> None:
        """Upsert ``record`` and persist immediately."""
        self.upsert(record)
        self.persist()

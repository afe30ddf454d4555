"""Repository entity and migration record models."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class Repository(BaseModel):
    """Source repository discovered under the root group.

    ``source_url`` is the identity used for deduplication. ``id`` may be
    missing in malformed listings; such repositories are rejected by the
    migrator rather than at parse time.
    """

    id: Optional[int] = Field(default=None, description='Source project ID')
    source_url: str = Field(..., description='HTTP clone URL on the source instance')
    path: str = Field(default='', description='Path with namespace (namespace/name)')
    name: Optional[str] = Field(default=None, description='Repository name')
    description: Optional[str] = Field(
        default=None, description='Repository description'
    )

    @property
    def short_name(self) -> str:
        """Last segment of the repository path."""
        return self.path.rstrip('/').rsplit('/', 1)[-1]

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'Repository':
        """Build a repository from a GitLab project payload."""
        return cls(
            id=data.get('id'),
            source_url=data.get('http_url_to_repo') or data.get('web_url') or '',
            path=data.get('path_with_namespace') or '',
            name=data.get('name'),
            description=data.get('description'),
        )


class MigrationStatus(str, Enum):
    """Migration status enumeration."""

    PENDING = 'pending'
    IN_PROGRESS = 'in_progress'
    SKIPPED = 'skipped'
    MIGRATED = 'migrated'
    FAILED = 'failed'

    @property
    def is_terminal(self) -> bool:
        return self in (
            MigrationStatus.SKIPPED,
            MigrationStatus.MIGRATED,
            MigrationStatus.FAILED,
        )


ALLOWED_TRANSITIONS = {
    MigrationStatus.PENDING: {
        MigrationStatus.SKIPPED,
        MigrationStatus.IN_PROGRESS,
        MigrationStatus.MIGRATED,
        MigrationStatus.FAILED,
    },
    MigrationStatus.IN_PROGRESS: {MigrationStatus.MIGRATED, MigrationStatus.FAILED},
}


class MigrationRecord(BaseModel):
    """Persisted migration status of one repository."""

    source_url: str = Field(..., description='Repository identity')
    repository_id: Optional[int] = Field(default=None, description='Source project ID')
    path: str = Field(default='', description='Source path with namespace')
    status: MigrationStatus = Field(
        default=MigrationStatus.PENDING, description='Migration status'
    )
    last_update: datetime = Field(
        default_factory=datetime.now, description='Time of the last transition'
    )

    @classmethod
    def for_repository(cls, repository: Repository) -> 'MigrationRecord':
        """New pending record for a discovered repository."""
        return cls(
            source_url=repository.source_url,
            repository_id=repository.id,
            path=repository.path,
        )

    def transition(self, status: MigrationStatus) -> 'MigrationRecord':
        """Move to ``status``, refusing regressions.

        Raises:
            ValueError: If the transition is not allowed
        """
        if status not in ALLOWED_TRANSITIONS.get(self.status, set()):
            raise ValueError(
                f'Illegal status transition for {self.path or self.source_url}: '
                f'{self.status.value} -> {status.value}'
            )
        self.status = status
        self.last_update = datetime.now()
        return self

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serialisable representation."""
        return {
            'source_url': self.source_url,
            'repository_id': self.repository_id,
            'path': self.path,
            'status': self.status.value,
            'last_update': self.last_update.isoformat(),
        }

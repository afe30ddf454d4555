"""Migration orchestrator: discovery followed by a fail-fast migration loop."""

from datetime import datetime
from typing import Callable, List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from ..models.repository import MigrationRecord, MigrationStatus
from .discovery import DiscoveryResult, RepositoryDiscovery
from .migrator import MigrationContext, MigrationOutcome, RepositoryMigrator
from .state import MigrationStateStore

ProgressCallback = Callable[[int, int, str], None]


class MigrationSummary(BaseModel):
    """Summary of migration results."""

    total_repositories: int = Field(..., description='Repositories discovered')
    migrated: int = Field(default=0, description='Repositories migrated')
    skipped: int = Field(default=0, description='Repositories skipped')
    failed: int = Field(default=0, description='Repositories failed')
    pending: int = Field(default=0, description='Repositories left pending')
    subgroups: int = Field(default=0, description='Source subgroups discovered')
    dry_run: bool = Field(default=False, description='Results of a dry run')

    started_at: datetime = Field(..., description='Migration start time')
    completed_at: Optional[datetime] = Field(
        default=None, description='Migration completion time'
    )

    outcomes: List[MigrationOutcome] = Field(
        default_factory=list, description='Per-repository outcomes'
    )


class MigrationOrchestrator:
    """Discovers the source tree and migrates its repositories one by one.

    Repositories are processed in discovery order. The first fatal error
    stops the run; repositories and groups migrated before it stay as they
    are.
    """

    def __init__(
        self,
        context: MigrationContext,
        discovery: RepositoryDiscovery,
        migrator: RepositoryMigrator,
        state_store: MigrationStateStore,
    ):
        self.context = context
        self.discovery = discovery
        self.migrator = migrator
        self.state_store = state_store
        self.logger = logger.bind(component='MigrationOrchestrator')

    def execute_migration(
        self, progress: Optional[ProgressCallback] = None
    ) -> MigrationSummary:
        """Run discovery and migrate every discovered repository.

        Args:
            progress: Called as ``progress(done, total, description)``

        Returns:
            Migration summary

        Raises:
            MigrationError: On the first fatal error
        """
        started_at = datetime.now()
        self.logger.info(
            f'Starting {"dry run" if self.context.dry_run else "migration"} '
            f'{self.context.source_root} -> {self.context.destination_root}'
        )

        result = self.discovery.discover(
            self.context.source_client, self.context.source_root
        )
        self._register(result)

        total = len(result.repositories)
        outcomes = []
        for index, repository in enumerate(result.repositories):
            if progress:
                progress(index, total, f'Migrating {repository.path}')
            outcomes.append(self.migrator.migrate(repository, self.context))

        if progress:
            progress(total, total, 'Migration completed')

        summary = self._summarize(result, outcomes, started_at)
        self.logger.info(
            f'Migration completed: {summary.migrated} migrated, '
            f'{summary.skipped} skipped, {summary.failed} failed'
        )
        return summary

    def _register(self, result: DiscoveryResult) -> None:
        """Record every discovered repository as pending and persist once."""
        self.state_store.load()
        for repository in result.repositories:
            self.state_store.upsert(MigrationRecord.for_repository(repository))
        if not self.context.dry_run:
            self.state_store.persist()

    def _summarize(
        self,
        result: DiscoveryResult,
        outcomes: List[MigrationOutcome],
        started_at: datetime,
    ) -> MigrationSummary:
        def count(status: MigrationStatus) -> int:
            return sum(1 for outcome in outcomes if outcome.status == status)

        return MigrationSummary(
            total_repositories=len(result.repositories),
            migrated=count(MigrationStatus.MIGRATED),
            skipped=count(MigrationStatus.SKIPPED),
            failed=count(MigrationStatus.FAILED),
            pending=count(MigrationStatus.PENDING),
            subgroups=len(result.subgroups),
            dry_run=self.context.dry_run,
            started_at=started_at,
            completed_at=datetime.now(),
            outcomes=outcomes,
        )

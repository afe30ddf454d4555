"""Per-repository migration state machine."""

import time
from typing import Callable, List, Optional, Set

from loguru import logger
from pydantic import BaseModel, Field

from ..api.client import GitLabClient
from ..api.exceptions import GitLabAPIError
from ..git.transfer import TransferClient
from ..models.project import Project, ProjectUpdate
from ..models.repository import MigrationRecord, MigrationStatus, Repository
from .exceptions import (
    InvalidRepository,
    MetadataUpdateFailed,
    TransferFailed,
    VerificationFailed,
)
from .replicator import GroupReplicator
from .state import MigrationStateStore


class MigrationContext(BaseModel):
    """Settings and clients shared by every repository of a run."""

    source_client: GitLabClient = Field(..., description='Source GitLab client')
    destination_client: GitLabClient = Field(
        ..., description='Destination GitLab client'
    )
    source_root: str = Field(..., description='Source root group path')
    destination_root: str = Field(..., description='Destination root group path')

    skip_repos: Set[str] = Field(
        default_factory=set, description='Repository short names to skip'
    )
    strip_prefix: str = Field(
        default='', description='Legacy prefix removed from source paths'
    )
    verify_attempts: int = Field(default=3, description='Verification attempts')
    verify_backoff: float = Field(
        default=5.0, description='Verification wait per attempt number'
    )
    dry_run: bool = Field(default=False, description='Perform dry run without changes')

    class Config:
        """Pydantic configuration."""

        arbitrary_types_allowed = True

    @property
    def destination_base_url(self) -> str:
        return self.destination_client.instance_url


class MigrationOutcome(BaseModel):
    """Result of migrating one repository."""

    source_url: str = Field(..., description='Repository identity')
    path: str = Field(..., description='Source path with namespace')
    status: MigrationStatus = Field(..., description='Final status')
    destination_path: Optional[str] = Field(
        default=None, description='Full path on the destination'
    )
    message: Optional[str] = Field(default=None, description='What happened')
    warnings: List[str] = Field(default_factory=list, description='Warning messages')


def normalize_path(path: str, prefix: str) -> str:
    """Strip the legacy namespace ``prefix`` from a repository path.

    The prefix only matches whole segments: ``org/team`` strips
    ``org/team/svc`` but leaves ``org/teamA/svc`` alone.
    """
    path = path.strip('/')
    prefix = prefix.strip('/')
    if prefix and (path == prefix or path.startswith(prefix + '/')):
        path = path[len(prefix):]
    return path.strip('/')


class RepositoryMigrator:
    """Drives one repository from pending to a terminal status.

    ``pending -> skipped`` for skipped names, ``pending -> migrated`` when
    the destination already has the project, otherwise
    ``pending -> in_progress -> migrated``. Every failure after the skip
    check marks the record ``failed`` and is re-raised.
    """

    def __init__(
        self,
        replicator: GroupReplicator,
        state_store: MigrationStateStore,
        transfer: TransferClient,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize repository migrator.

        Args:
            replicator: Creates destination groups on demand
            state_store: Receives every status transition
            transfer: Copies repository content between instances
            sleep: Wait function used between verification attempts
        """
        self.replicator = replicator
        self.state_store = state_store
        self.transfer = transfer
        self.sleep = sleep
        self.logger = logger.bind(component='RepositoryMigrator')

    def migrate(
        self, repository: Repository, context: MigrationContext
    ) -> MigrationOutcome:
        """Migrate ``repository``.

        Raises:
            MigrationError: On any fatal condition; the record is left failed
        """
        record = self.state_store.get(repository.source_url)
        if record is None:
            record = MigrationRecord.for_repository(repository)
            self.state_store.upsert(record)

        if repository.short_name in context.skip_repos:
            self.logger.info(f'Skipping {repository.path} (in skip list)')
            self._transition(record, MigrationStatus.SKIPPED, context)
            return self._outcome(repository, record, message='in skip list')

        try:
            return self._migrate(repository, record, context)
        except Exception as e:
            self.logger.error(
                f'Migration of {repository.path or repository.source_url} failed: {e}'
            )
            if not record.status.is_terminal:
                self._transition(record, MigrationStatus.FAILED, context)
            raise

    def _migrate(
        self,
        repository: Repository,
        record: MigrationRecord,
        context: MigrationContext,
    ) -> MigrationOutcome:
        self._validate(repository)

        relative_path = normalize_path(repository.path, context.strip_prefix)
        destination_path = f'{context.destination_root}/{relative_path}'
        namespace = relative_path.rpartition('/')[0]

        if namespace and not context.dry_run:
            self.replicator.ensure_group_path(
                context.destination_client, context.destination_root, namespace
            )

        client = context.destination_client
        existing = self._find_project(client, destination_path)
        if existing is not None:
            self.logger.info(f'{destination_path} already exists on the destination')
            warnings = self._update_description(client, existing, repository, context)
            self._transition(record, MigrationStatus.MIGRATED, context)
            return self._outcome(
                repository,
                record,
                destination_path,
                message='already migrated',
                warnings=warnings,
            )

        if context.dry_run:
            self.logger.info(
                f'Dry run: would transfer {repository.path} -> {destination_path}'
            )
            return self._outcome(
                repository, record, destination_path, message='would transfer'
            )

        self._transition(record, MigrationStatus.IN_PROGRESS, context)

        warnings = []
        dest_url = f'{context.destination_base_url}/{destination_path}.git'
        result = self.transfer.transfer(repository.source_url, dest_url)
        if not result.ok:
            if not result.rejected_hidden_ref:
                raise TransferFailed(
                    f'Transfer of {repository.path} failed: {result.error_detail}',
                    subject=repository.path,
                )
            warning = (
                f'Destination rejected hidden refs for {repository.path}: '
                f'{result.error_detail}'
            )
            self.logger.warning(warning)
            warnings.append(warning)

        project = self._verify(client, destination_path, context)
        warnings += self._update_description(client, project, repository, context)

        self._transition(record, MigrationStatus.MIGRATED, context)
        self.logger.info(f'Migrated {repository.path} -> {destination_path}')
        return self._outcome(
            repository, record, destination_path, message='transferred', warnings=warnings
        )

    @staticmethod
    def _validate(repository: Repository) -> None:
        if repository.id is None:
            raise InvalidRepository(
                f'Repository {repository.path or repository.source_url} has no id',
                subject=repository.source_url,
            )
        if not repository.source_url:
            raise InvalidRepository(
                f'Repository {repository.path} has no clone URL',
                subject=repository.path,
            )
        if not repository.path.rpartition('/')[0]:
            raise InvalidRepository(
                f'Repository {repository.source_url} has no namespace path',
                subject=repository.source_url,
            )

    def _find_project(
        self, client: GitLabClient, full_path: str
    ) -> Optional[Project]:
        """Find the destination project at ``full_path``, or ``None``."""
        name = full_path.rsplit('/', 1)[-1]
        for project_data in client.get_paginated('/projects', params={'search': name}):
            if project_data.get('path_with_namespace') == full_path:
                return Project.from_api(project_data)
        return None

    def _verify(
        self, client: GitLabClient, full_path: str, context: MigrationContext
    ) -> Project:
        for attempt in range(1, context.verify_attempts + 1):
            wait = attempt * context.verify_backoff
            self.logger.debug(
                f'Verifying {full_path} in {wait:g}s '
                f'(attempt {attempt}/{context.verify_attempts})'
            )
            self.sleep(wait)

            project = self._find_project(client, full_path)
            if project is not None:
                return project

        raise VerificationFailed(
            f'{full_path} not found on the destination after '
            f'{context.verify_attempts} attempts',
            subject=full_path,
        )

    def _update_description(
        self,
        client: GitLabClient,
        project: Project,
        repository: Repository,
        context: MigrationContext,
    ) -> List[str]:
        """Copy the source description; failures become warnings."""
        if context.dry_run or repository.description is None:
            return []
        if project.description == repository.description:
            return []

        try:
            self._set_description(client, project, repository.description)
        except MetadataUpdateFailed as e:
            warning = f'Could not update description of {project.path_with_namespace}: {e}'
            self.logger.warning(warning)
            return [warning]
        return []

    @staticmethod
    def _set_description(
        client: GitLabClient, project: Project, description: str
    ) -> None:
        update = ProjectUpdate(description=description)
        try:
            response = client.put(f'/projects/{project.id}', data=update.dict())
        except GitLabAPIError as e:
            raise MetadataUpdateFailed(str(e)) from e
        if not response.success:
            raise MetadataUpdateFailed(f'HTTP {response.status_code}')

    def _transition(
        self,
        record: MigrationRecord,
        status: MigrationStatus,
        context: MigrationContext,
    ) -> None:
        record.transition(status)
        if not context.dry_run:
            self.state_store.save(record)

    @staticmethod
    def _outcome(
        repository: Repository,
        record: MigrationRecord,
        destination_path: Optional[str] = None,
        message: Optional[str] = None,
        warnings: Optional[List[str]] = None,
    ) -> MigrationOutcome:
        return MigrationOutcome(
            source_url=repository.source_url,
            path=repository.path,
            status=record.status,
            destination_path=destination_path,
            message=message,
            warnings=warnings or [],
        )

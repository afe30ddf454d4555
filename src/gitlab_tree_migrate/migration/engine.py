"""Migration engine - main entry point for migration operations."""

from typing import Dict, Optional

from loguru import logger

from ..api.client import GitLabClient, GitLabClientFactory
from ..api.exceptions import GitLabAuthenticationError, GitLabPermissionError
from ..config.config import Config
from ..git.transfer import GitTransfer, TransferClient
from .cache import GroupCache
from .discovery import RepositoryDiscovery
from .exceptions import AuthenticationError
from .migrator import MigrationContext, RepositoryMigrator
from .orchestrator import MigrationOrchestrator, MigrationSummary, ProgressCallback
from .replicator import GroupReplicator
from .resolver import GroupResolver
from .state import MigrationStateStore


class MigrationEngine:
    """Wires the migration components together for one run."""

    def __init__(
        self,
        config: Config,
        source_client: Optional[GitLabClient] = None,
        destination_client: Optional[GitLabClient] = None,
        transfer: Optional[TransferClient] = None,
    ):
        """Initialize migration engine.

        Args:
            config: Migration configuration
            source_client: Client override for the source instance
            destination_client: Client override for the destination instance
            transfer: Transfer collaborator override
        """
        self.config = config
        self.logger = logger.bind(component='MigrationEngine')

        self.source_client = source_client or GitLabClientFactory.create_client(
            config.source
        )
        self.destination_client = (
            destination_client
            or GitLabClientFactory.create_client(config.destination)
        )

        self.context = MigrationContext(
            source_client=self.source_client,
            destination_client=self.destination_client,
            source_root=config.source.group_path,
            destination_root=config.destination.group_path,
            skip_repos=set(config.migration.skip_repos),
            strip_prefix=config.strip_prefix,
            verify_attempts=config.migration.verify_attempts,
            verify_backoff=config.migration.verify_backoff,
            dry_run=config.migration.dry_run,
        )

        self.cache = GroupCache()
        self.resolver = GroupResolver(self.cache)
        self.discovery = RepositoryDiscovery(self.resolver)
        self.replicator = GroupReplicator(
            self.resolver, self.source_client.instance_url, config.source.group_path
        )
        self.state_store = MigrationStateStore(
            None if config.migration.dry_run else config.migration.state_file
        )
        self.transfer = transfer or GitTransfer(
            config.git,
            source_token=config.source.token or config.source.oauth_token,
            dest_token=config.destination.token or config.destination.oauth_token,
        )
        self.migrator = RepositoryMigrator(
            self.replicator, self.state_store, self.transfer
        )
        self.orchestrator = MigrationOrchestrator(
            self.context, self.discovery, self.migrator, self.state_store
        )

    def migrate(self, progress: Optional[ProgressCallback] = None) -> MigrationSummary:
        """Check access to both instances, then run the migration.

        Raises:
            MigrationError: On any fatal condition
        """
        self.logger.info('Starting GitLab tree migration')

        try:
            self.check_access()
            summary = self.orchestrator.execute_migration(progress)
            self.logger.info('Migration completed successfully')
            return summary

        except Exception as e:
            self.logger.error(f'Migration failed: {e}')
            raise
        finally:
            self.close()

    def check_access(self) -> Dict[str, Optional[str]]:
        """Query the version endpoint of both instances.

        Returns:
            Role to reported version

        Raises:
            AuthenticationError: If either instance rejects the credentials
        """
        versions = {}
        for role, client in (
            ('source', self.source_client),
            ('destination', self.destination_client),
        ):
            try:
                version = client.get_version()
            except (GitLabAuthenticationError, GitLabPermissionError) as e:
                raise AuthenticationError(
                    f'Access to {role} instance {client.instance_url} denied: {e}',
                    subject=client.instance_url,
                ) from e
            self.logger.info(
                f'Connected to {role} {client.instance_url} '
                f'(GitLab {version or "unknown version"})'
            )
            versions[role] = version
        return versions

    def validate(self) -> Dict[str, str]:
        """Check access and resolve both root groups without changing anything.

        Returns:
            Role to resolved root group full path
        """
        try:
            self.check_access()
            source_root = self.resolver.resolve(
                self.source_client, self.context.source_root
            )
            destination_root = self.resolver.resolve(
                self.destination_client, self.context.destination_root
            )
            return {
                'source': source_root.full_path,
                'destination': destination_root.full_path,
            }
        finally:
            self.close()

    def close(self) -> None:
        self.source_client.close()
        self.destination_client.close()

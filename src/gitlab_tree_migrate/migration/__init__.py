"""Migration engine and its components."""

from .cache import GroupCache
from .discovery import DiscoveryResult, RepositoryDiscovery
from .engine import MigrationEngine
from .exceptions import (
    AuthenticationError,
    GroupCreateFailed,
    GroupNotFound,
    InvalidRepository,
    MetadataUpdateFailed,
    MigrationError,
    ParentGroupMissing,
    TransferFailed,
    VerificationFailed,
)
from .migrator import MigrationContext, MigrationOutcome, RepositoryMigrator
from .orchestrator import MigrationOrchestrator, MigrationSummary
from .replicator import GroupReplicator
from .resolver import GroupResolver
from .state import MigrationStateStore

__all__ = [
    'GroupCache',
    'GroupResolver',
    'RepositoryDiscovery',
    'DiscoveryResult',
    'GroupReplicator',
    'RepositoryMigrator',
    'MigrationContext',
    'MigrationOutcome',
    'MigrationStateStore',
    'MigrationOrchestrator',
    'MigrationSummary',
    'MigrationEngine',
    'MigrationError',
    'AuthenticationError',
    'GroupNotFound',
    'ParentGroupMissing',
    'GroupCreateFailed',
    'InvalidRepository',
    'TransferFailed',
    'VerificationFailed',
    'MetadataUpdateFailed',
]

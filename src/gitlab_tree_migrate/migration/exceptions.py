"""Migration exceptions.

Every ``MigrationError`` is fatal: it halts the whole run. Best-effort
failures use ``MetadataUpdateFailed`` and are logged, never propagated.
"""

from typing import Optional


class MigrationError(Exception):
    """Base class for fatal migration errors."""

    def __init__(self, message: str, subject: Optional[str] = None):
        """Initialize migration error.

        Args:
            message: Error message
            subject: Group or repository path the error is about
        """
        super().__init__(message)
        self.subject = subject


class AuthenticationError(MigrationError):
    """Credentials rejected (401/403) by the source or destination instance."""


class GroupNotFound(MigrationError):
    """No group with the requested full path exists."""


class ParentGroupMissing(MigrationError):
    """The destination parent group of a group to create does not exist."""


class GroupCreateFailed(MigrationError):
    """The destination refused to create a group."""


class InvalidRepository(MigrationError):
    """A discovered repository lacks an id or namespace path."""


class TransferFailed(MigrationError):
    """The transfer collaborator reported a failure."""


class VerificationFailed(MigrationError):
    """The transferred project never showed up on the destination."""


class MetadataUpdateFailed(Exception):
    """Updating a project description failed. Not fatal."""

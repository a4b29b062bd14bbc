"""
Custom exception hierarchy for the storage migrator.

Components raise these at their boundaries; the reconciler and orchestrator
turn them into typed outcomes so a single job failure never stops a batch.
"""


class MigratorError(Exception):
    """Base exception for all storage migrator errors."""
    pass


class ListingUnavailable(MigratorError):
    """Raised when the control plane cannot list or describe a resource."""
    pass


class SourceNotFound(MigratorError):
    """Raised when the resource does not exist on the source account."""
    pass


class DestinationDeclined(MigratorError):
    """Raised when the user chose not to create a missing destination."""
    pass


class CreationFailed(MigratorError):
    """Raised when the control plane rejects a resource creation request."""
    pass


class TransferFailed(MigratorError):
    """Raised when the bulk copy tool exits unsuccessfully."""

    def __init__(self, message: str, exit_code=None):
        super().__init__(message)
        self.exit_code = exit_code


class ToolNotFoundError(MigratorError):
    """Raised when a required external executable cannot be located."""
    pass


class DatabaseError(MigratorError):
    """Raised when job history operations fail."""
    pass


class MissingCredentialError(MigratorError):
    """Raised when no SAS token is available for an account."""
    pass

"""Git transfer of repository content."""

from .transfer import GitTransfer, TransferClient, TransferResult

__all__ = ['GitTransfer', 'TransferClient', 'TransferResult']

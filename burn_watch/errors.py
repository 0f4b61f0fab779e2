from __future__ import annotations


class BurnWatchError(Exception):
    """Base class for errors raised by burn_watch."""


class TransientRpcError(BurnWatchError):
    """Network or RPC-layer failure; the call is retried with backoff."""


class TransactionNotFound(BurnWatchError):
    """The ledger no longer has (or never had) the transaction. Skipped permanently."""


class MalformedTransaction(BurnWatchError):
    """The response could not be structurally parsed. Skipped permanently."""


class ConfigurationError(BurnWatchError):
    """Invalid settings or unreachable endpoint at startup. Fatal."""

"""Errors raised while planning scans over a table's manifest history."""

from __future__ import annotations


class ManifestHistoryIOError(OSError):
    """I/O failure while aggregating manifests across the snapshot history.

    Raised when the concurrent manifest-list reader cannot be closed after it
    was fully consumed. The underlying failure is chained as ``__cause__``.
    """

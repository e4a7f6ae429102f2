"""Error taxonomy shared by the store, services, and resolver."""

from __future__ import annotations


class LedgerError(Exception):
    """Base error for all ledger operations."""

    retryable: bool = False


class NotFoundError(LedgerError):
    """A requested asset, lineage, or version does not exist."""


class InvalidArgumentError(LedgerError, ValueError):
    """Malformed input, e.g. comparing assets from unrelated lineages."""


class ConflictError(LedgerError):
    """A concurrent version write moved the lineage under the caller.

    Always retryable by re-reading the lineage's current latest member.
    """

    retryable = True

    def __init__(
        self,
        lineage_root_id: str,
        expected_latest_id: str | None = None,
        actual_latest_id: str | None = None,
    ) -> None:
        self.lineage_root_id = lineage_root_id
        self.expected_latest_id = expected_latest_id
        self.actual_latest_id = actual_latest_id
        super().__init__(
            f"Lineage {lineage_root_id} moved: expected latest "
            f"{expected_latest_id}, found {actual_latest_id}"
        )


class FeedUnavailableError(LedgerError):
    """The external audio feed could not be read as a whole."""

    retryable = True

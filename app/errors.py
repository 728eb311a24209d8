"""
Domain Errors
Raised by the matching engine and feedback store, translated to HTTP in app.main
"""

from typing import Optional


class QuoteMatcherError(Exception):
    """Base class for all quote matcher errors."""

    status_code = 500


class ValidationError(QuoteMatcherError):
    """
    Input rejected before any computation or write.

    Covers malformed identifiers, out-of-range ratings, negative weights or
    dimensions and unknown algorithm versions.
    """

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class NotFoundError(QuoteMatcherError):
    """Referenced quote or match does not exist (distinct from an empty result)."""

    status_code = 404

    def __init__(self, resource: str, identifier):
        super().__init__(f"{resource} {identifier} not found")
        self.resource = resource
        self.identifier = identifier


class UnscoreablePairError(QuoteMatcherError):
    """
    No criterion is present on both sides of a pair.

    Internal only: MatchRanker catches it and skips the candidate.
    """

    def __init__(self, source_quote_id, candidate_quote_id):
        super().__init__(
            f"Quotes {source_quote_id} and {candidate_quote_id} share no comparable criteria"
        )
        self.source_quote_id = source_quote_id
        self.candidate_quote_id = candidate_quote_id


class StorageError(QuoteMatcherError):
    """
    Persistence failure on write.

    Match and feedback writes are upserts, so the caller should retry rather
    than assume partial success.
    """

    status_code = 503

    def __init__(self, operation: str, original: Optional[BaseException] = None):
        detail = f": {original}" if original is not None else ""
        super().__init__(f"Storage failure during {operation}{detail}")
        self.operation = operation
        self.original = original
        self.retryable = True

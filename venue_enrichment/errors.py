"""Error taxonomy for the enrichment pipeline.

Only ``PersistenceFailed`` (and genuinely unexpected exceptions) surface as a
failed lead in a batch; the other classes are caught at their stage and turned
into a degraded result.
"""


class EnrichmentError(RuntimeError):
    """Base class for pipeline errors."""


class InvalidUrl(EnrichmentError, ValueError):
    """Raised when a website string cannot be turned into a fetchable URL."""


class NoWebsite(EnrichmentError):
    """The lead has no resolvable website; the lead is skipped, not failed."""


class ExtractionFailed(EnrichmentError):
    """The content-extraction service errored, timed out or returned nothing useful."""


class CompletionCallFailed(EnrichmentError):
    """The text-completion service could not be reached or rejected the call."""


class CompletionParseFailed(EnrichmentError):
    """No JSON object could be recovered from a completion response."""


class PersistenceFailed(EnrichmentError):
    """Storing an enrichment record failed."""

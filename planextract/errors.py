"""
Exception hierarchy for the extraction pipeline.

InputError and ParseError are fatal to a single request. UpstreamError wraps
anything the completion provider raises so callers can apply their own retry
policy. Low confidence and summary mismatches are never raised; they travel
back as warnings on the result.
"""

from typing import Optional


class ExtractionError(Exception):
    """Base exception for the extraction pipeline."""
    pass


class InputError(ExtractionError):
    """Raised when the submitted document text is empty."""
    pass


class ConfigurationError(ExtractionError):
    """Raised for an unusable config file, provider or missing API key."""
    pass


class UpstreamError(ExtractionError):
    """Raised when the completion client call fails."""

    def __init__(self, message: str, provider: Optional[str] = None):
        self.provider = provider
        self.message = message
        prefix = f"[{provider}] " if provider else ""
        super().__init__(f"{prefix}{message}")


class ParseError(ExtractionError):
    """Raised when no JSON object can be recovered from the model reply."""

    def __init__(self, message: str = "unparseable extraction response", response_snippet: str = ""):
        self.response_snippet = response_snippet
        detail = f": {response_snippet!r}" if response_snippet else ""
        super().__init__(f"{message}{detail}")

"""
Exception types for the AI Proposal Engine.
"""
from typing import Any, Optional


class ProposalEngineError(Exception):
    """Base class for all pipeline errors."""


class CompletionServiceError(ProposalEngineError):
    """The completion service could not produce a response."""


class CompletionTimeoutError(CompletionServiceError):
    """A completion call exceeded its time budget."""


class ParseError(ProposalEngineError):
    """Model output could not be parsed as JSON."""

    def __init__(self, message: str, raw_text: str = "", original_error: Optional[Exception] = None):
        super().__init__(message)
        self.raw_text = raw_text
        self.original_error = original_error


class ResponseShapeError(ProposalEngineError):
    """Model output parsed as JSON but does not have the expected structure."""


class ImplementationPlanError(ProposalEngineError):
    """Implementation planning failed."""

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.details = details


class NoValidStrategiesError(ImplementationPlanError):
    """No strategy could be planned for LLM implementation."""

    def __init__(self, message: str = "No valid LLM strategies could be identified"):
        super().__init__(message)

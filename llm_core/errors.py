"""Exception hierarchy for the model abstraction layer."""


class LLMError(Exception):
    """Base exception for all llm_core errors."""
    pass


class ConfigurationError(LLMError, ValueError):
    """Raised when an LLM is set up in a way that can never succeed.

    Not retryable: fixing it requires changing code or configuration.
    """
    pass


class BudgetError(ConfigurationError):
    """Raised when max_tokens leaves no room for the prompt in the context window."""
    pass


class TransportError(LLMError):
    """Raised when a network call to a provider or host process fails."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code

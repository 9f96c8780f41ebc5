"""Error taxonomy shared by every AI scope."""

from __future__ import annotations


class AIServiceError(Exception):
    pass


class ConfigurationError(AIServiceError):
    """No provider could be resolved from the current settings."""


class ProviderError(AIServiceError):
    """The resolved provider failed (network, credentials, status, empty content)."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider} provider failed: {message}")


class ParseError(AIServiceError):
    """The provider answered but no usable JSON could be read from it."""

    def __init__(self, message: str, raw_text: str = "") -> None:
        self.raw_text = raw_text
        super().__init__(message)


class ExtractionValidationError(AIServiceError):
    """Parsed data breaks a business rule that cannot be auto-corrected."""


class PayloadTooLargeError(AIServiceError):
    def __init__(self, size: int, limit: int) -> None:
        self.size = size
        self.limit = limit
        super().__init__(
            f"Encoded receipt is {size} characters, above the {limit} character limit. "
            "Upload a smaller or lower-resolution image."
        )


class UnsupportedFileError(AIServiceError):
    pass

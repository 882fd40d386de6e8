"""Exceptions raised by the embed_properties pipeline."""


class SetupError(Exception):
    """Pipeline cannot start: missing credential or unreachable store."""


class EmbeddingError(Exception):
    """Embedding generation failed after all retry attempts."""

    def __init__(self, message: str, attempts: int):
        super().__init__(message)
        self.attempts = attempts

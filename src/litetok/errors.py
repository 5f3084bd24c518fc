"""Custom exception hierarchy for litetok tokenization errors."""

import regex as re

from .types import Token


class LiteTokError(Exception):
    """Base exception for all litetok errors."""


class SpecialTokenError(LiteTokError):
    """Raised when special token handling fails."""


class DisallowedSpecialTokenError(SpecialTokenError, ValueError):
    """Raised when text to be encoded contains a special token that is not allowed."""

    def __init__(self, token: str) -> None:
        # message shape is relied upon by callers, keep it verbatim
        super().__init__(f"The text contains a special token that is not allowed: {token}")
        self.token = token


class TokenizationError(LiteTokError):
    """Raised when encode arguments are invalid."""

    def __init__(self, message: str, *, max_token_length: int | None = None) -> None:
        if max_token_length is not None:
            message += f" (max_token_length: {max_token_length})"
        super().__init__(message)
        self.max_token_length = max_token_length


class VocabularyError(LiteTokError):
    """Raised when vocabulary operations fail."""

    def __init__(
        self,
        message: str,
        *,
        vocab_size: int | None = None,
        invalid_tok: Token | None = None,
    ) -> None:
        """Initialize with optional token and vocab_size that get appended to the message."""
        extra = ""
        if vocab_size is not None:
            extra += f" (vocab size: {vocab_size})"
        # decoding: token not in vocab
        if invalid_tok is not None:
            extra += f" (invalid token: {invalid_tok})"
        super().__init__(message + extra)
        self.vocab_size = vocab_size
        self.invalid_tok = invalid_tok


class UnknownTokenError(VocabularyError, KeyError):
    """Raised when a token id resolves in neither the vocabulary nor the special tokens."""

    def __init__(self, token: Token) -> None:
        super().__init__("token not found in vocabulary", invalid_tok=token)

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class PatternError(LiteTokError):
    """Raised when compiling and/or validating regex patterns."""

    def __init__(
        self,
        message: str,
        *,
        pattern: str | None = None,
        regex_err: re.error | None = None,
    ) -> None:
        """
        Initialize PatternError with pattern details.

        Args:
            message: Error message.
            pattern: The regex pattern that failed.
            regex_err: The underlying regex error from the regex library.
        """
        extra = ""
        if pattern:
            extra += f" (pattern: {pattern!r})"
        if regex_err:
            extra += f" (reason: {regex_err})"
        super().__init__(message + extra)
        self.pattern = pattern
        self.regex_err = regex_err


class StrategyError(LiteTokError):
    """Raised when strategy operations fail."""

    def __init__(
        self,
        message: str,
        *,
        invalid_name: str | None = None,
        available_strats: list[str] | None = None,
    ) -> None:
        extra = ""
        if invalid_name:
            extra += f" (available: {available_strats}) (got {invalid_name})"
        super().__init__(message + extra)
        self.invalid_name = invalid_name
        self.available_strats = available_strats

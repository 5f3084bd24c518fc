"""Text segmentation patterns and the segmenter that applies them."""

from collections.abc import Iterator
from enum import Enum
import logging

import regex as re

from .errors import PatternError

log = logging.getLogger(__name__)


class TokenPattern(str, Enum):
    """
    Pre-defined regex patterns used to split text before applying BPE.

    Source: https://github.com/openai/tiktoken/blob/main/tiktoken_ext/openai_public.py
    """

    # digit runs are capped at 3, letter runs are not capped
    CL100K = (
        r"'(?i:[sdmt]|ll|ve|re)|"
        r"[^\r\n\p{L}\p{N}]?+\p{L}++|"
        r"\p{N}{1,3}+|"
        r" ?[^\s\p{L}\p{N}]++[\r\n]*+|"
        r"\s++$|"
        r"\s*[\r\n]|"
        r"\s+(?!\S)|"
        r"\s"
    )

    @classmethod
    def get(cls, name: str) -> str:
        """Get patterns by name (case-insensitive)."""
        try:
            return cls[name.upper().replace("-", "_").removesuffix("_BASE")].value
        except KeyError:
            raise PatternError(
                f"Unknown pattern: {name!r}. "
                f"Valid patterns: {', '.join(pat.name for pat in cls)}"
            )


def list_patterns() -> list[str]:
    """Return names of all available built-in segmentation patterns."""
    return [pat.name for pat in TokenPattern]


def get_pattern(name: str) -> str:
    """Return the pattern string registered under ``name``."""
    return TokenPattern.get(name)


class Segmenter:
    """
    Splits text into chunks that BPE merges never cross.

    Chunks are produced lazily and always concatenate back to the input text.
    Every call to :meth:`segment` starts a fresh scan.
    """

    def __init__(self, pattern: str) -> None:
        self.pat = pattern
        self.compiled_pat: re.Pattern[str] = compile_pattern(pattern)

    def segment(self, text: str) -> Iterator[str]:
        """Yield the chunks of ``text`` in order."""
        for m in self.compiled_pat.finditer(text):
            yield m.group(0)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.pat!r})"


def compile_pattern(pattern: str) -> re.Pattern:
    """
    Compile and validate a regex pattern.

    :param pattern: Regex pattern string to compile.
    :return: Compiled regex pattern.
    :raises PatternError: If pattern is invalid.
    """
    try:
        compiled = re.compile(pattern)
    except re.error as e:
        raise PatternError("invalid regex pattern", pattern=pattern, regex_err=e)
    log.debug(f"compiled split pattern with {compiled.groups} groups")
    return compiled

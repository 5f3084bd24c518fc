"""Special token recognition within raw text."""

from collections.abc import Collection, Iterator, Mapping
from dataclasses import dataclass
import logging
from types import MappingProxyType

import regex as re

from .errors import DisallowedSpecialTokenError
from .types import SpecialTokens, Token

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SpecialMatch:
    """A special token occurrence spanning ``text[start:end]``."""

    start: int
    end: int
    text: str
    token: Token


class SpecialTokenScanner:
    """
    Finds literal special token occurrences in text.

    All registered tokens are compiled into a single alternation ordered
    longest-first, so at any position the longest token wins and a left-to-right
    scan yields the leftmost, non-overlapping matches. This holds even when one
    token's text is a substring of another's.
    """

    def __init__(self, special_toks: SpecialTokens) -> None:
        self.special_toks: Mapping[str, Token] = MappingProxyType(dict(special_toks))
        self._pat: re.Pattern[str] | None = _special_token_regex(self.special_toks)
        log.debug(f"special token scanner built for {len(self.special_toks)} tokens")

    def finditer(self, text: str) -> Iterator[SpecialMatch]:
        """Yield special token matches in ``text`` from left to right."""
        if self._pat is None:
            return
        for m in self._pat.finditer(text):
            seq = m.group(0)
            yield SpecialMatch(m.start(), m.end(), seq, self.special_toks[seq])

    def scan(self, text: str) -> list[SpecialMatch]:
        """Return every special token match in ``text``, sorted and non-overlapping."""
        return list(self.finditer(text))

    def check(
        self,
        matches: list[SpecialMatch],
        allowed: Collection[str],
        disallowed: Collection[str],
    ) -> list[SpecialMatch]:
        """
        Apply a permission policy to scanned matches.

        :param matches: Output of :meth:`scan`.
        :param allowed: Tokens to encode as special token ids.
        :param disallowed: Tokens whose presence is an error.
        :return: The allowed matches, in order. Matches in neither set are dropped
            and their text is treated as ordinary content.
        :raises DisallowedSpecialTokenError: On the first disallowed match.
        """
        kept: list[SpecialMatch] = []
        for match in matches:
            if match.text in disallowed:
                raise DisallowedSpecialTokenError(match.text)
            if match.text in allowed:
                kept.append(match)
        return kept

    def __len__(self) -> int:
        return len(self.special_toks)


def _special_token_regex(special_toks: Mapping[str, Token]) -> re.Pattern | None:
    """Compile an alternation over escaped special tokens, longest first."""
    if not special_toks:
        return None
    # escape regex metachars like "|" in special tokens to avoid unwanted effects
    ordered = sorted(special_toks, key=lambda seq: (-len(seq), seq))
    return re.compile("|".join(re.escape(seq) for seq in ordered))

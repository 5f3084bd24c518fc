"""Encoder and decoder over an immutable BPE vocabulary."""

from collections.abc import Callable, Collection, Iterable, Iterator, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
import functools
import logging
import os
from types import MappingProxyType
from typing import TypeVar

from .bpe import byte_pair_encode
from .errors import TokenizationError, UnknownTokenError, VocabularyError
from .pattern import Segmenter
from .special import SpecialMatch, SpecialTokenScanner
from .strategy import SpecialArg, SpecialTokenStrategy, resolve_policy
from .types import Ranks, SpecialTokens, Token, TokenBytes

log = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


def _default_num_threads() -> int:
    """Worker count for batch operations (respects env var override)."""
    env = os.environ.get("LITETOK_NUM_THREADS", "").strip()
    if env:
        try:
            return max(1, int(env))
        except ValueError:
            log.warning(f"ignoring invalid LITETOK_NUM_THREADS={env!r}")
    return os.cpu_count() or 1


class Encoding:
    """
    Byte-level BPE codec that converts text to token ids and back.

    Text is split on special tokens, each ordinary span is segmented by the
    split pattern, and each segment is compressed with byte pair merges ranked
    by ``mergeable_ranks``. All tables are built once here and never mutated,
    so one instance can be shared freely across threads.
    """

    def __init__(
        self,
        name: str,
        *,
        pat_str: str,
        mergeable_ranks: Ranks,
        special_tokens: SpecialTokens,
        explicit_n_vocab: int | None = None,
    ) -> None:
        """
        Build the codec tables.

        :param name: Name of the encoding, e.g. "cl100k_base".
        :param pat_str: Regex used to segment ordinary text.
        :param mergeable_ranks: Byte sequence to token id; ids double as merge ranks.
        :param special_tokens: Special token text to token id.
        :param explicit_n_vocab: Expected total number of ids, checked when given.
        :raises VocabularyError: If the tables are inconsistent.
        :raises PatternError: If ``pat_str`` is not a valid regex.
        """
        self.name = name
        self._pat_str = pat_str

        _validate_tables(mergeable_ranks, special_tokens, explicit_n_vocab)

        # bytes -> token
        self._mergeable_ranks: Mapping[TokenBytes, Token] = MappingProxyType(
            dict(mergeable_ranks)
        )
        # token -> bytes
        self._decoder: Mapping[Token, TokenBytes] = MappingProxyType(
            {tok: b for b, tok in self._mergeable_ranks.items()}
        )
        self._special_tokens: Mapping[str, Token] = MappingProxyType(
            dict(special_tokens)
        )
        self._special_decoder: Mapping[Token, TokenBytes] = MappingProxyType(
            {tok: seq.encode("utf-8") for seq, tok in self._special_tokens.items()}
        )

        self.max_token_value = max(
            max(self._decoder, default=0), max(self._special_decoder, default=0)
        )
        self._segmenter = Segmenter(pat_str)
        self._scanner = SpecialTokenScanner(self._special_tokens)

        log.info(
            f"encoding {name!r} built: {len(self._mergeable_ranks)} mergeable tokens, "
            f"{len(self._special_tokens)} special tokens"
        )

    def __repr__(self) -> str:
        return f"<Encoding {self.name!r}>"

    # ====================================================================
    # Encoding
    # ====================================================================

    def encode_ordinary(self, text: str) -> list[Token]:
        """
        Encode text without special token handling.

        Special token text is encoded like any other text.

        .. code-block:: python

            >>> enc.encode_ordinary("hello world")
            [15339, 1917]
        """
        try:
            return self._encode_ordinary(text)
        except UnicodeEncodeError:
            # lone surrogates, e.g. from JSON: re-pair them or replace with U+FFFD
            return self._encode_ordinary(_fix_surrogates(text))

    def encode(
        self,
        text: str,
        allowed_special: SpecialArg | SpecialTokenStrategy = frozenset(),
        disallowed_special: SpecialArg = "all",
        max_token_length: int | None = None,
    ) -> list[Token]:
        """
        Encode text into a sequence of tokens.

        By default any registered special token found in ``text`` raises. Pass
        ``allowed_special="all"`` or a collection of token strings to encode them
        as their special token ids instead, or ``disallowed_special=()`` to encode
        them as ordinary text.

        The whole text is checked before any BPE work so an error never comes
        with partial output.

        :param text: Text to encode.
        :param allowed_special: "all", a collection of special token strings, or a
            :class:`SpecialTokenStrategy`.
        :param disallowed_special: "all" (every registered token not allowed) or
            a collection of special token strings.
        :param max_token_length: Stop encoding once this many tokens are produced.
            Special tokens are still checked over the whole text.
        :returns: Encoded token sequence.
        :raises DisallowedSpecialTokenError: If a disallowed special token is found;
            the first one in the text is reported.
        :raises TokenizationError: If ``max_token_length`` is negative.

        .. code-block:: python

            >>> enc.encode("<|endoftext|>", allowed_special="all")
            [100257]
        """
        if max_token_length is not None and max_token_length < 0:
            raise TokenizationError(
                "max_token_length must be non-negative", max_token_length=max_token_length
            )

        strategy = resolve_policy(allowed_special, disallowed_special)
        allowed, disallowed = strategy.handle(self._special_tokens)

        try:
            return self._encode(text, allowed, disallowed, max_token_length)
        except UnicodeEncodeError:
            # lone surrogates, e.g. from JSON: re-pair them or replace with U+FFFD
            text = _fix_surrogates(text)
            return self._encode(text, allowed, disallowed, max_token_length)

    def encode_single_token(self, text_or_bytes: str | bytes) -> Token:
        """
        Encode text corresponding to exactly one token.

        :raises KeyError: If the input is not a single token.
        """
        if isinstance(text_or_bytes, str):
            if text_or_bytes in self._special_tokens:
                return self._special_tokens[text_or_bytes]
            text_or_bytes = text_or_bytes.encode("utf-8")
        return self._mergeable_ranks[text_or_bytes]

    def encode_ordinary_batch(
        self, texts: Sequence[str], *, num_threads: int | None = None
    ) -> list[list[Token]]:
        """Encode multiple texts in parallel, ignoring special tokens."""
        return self._map_batch(self.encode_ordinary, texts, num_threads)

    def encode_batch(
        self,
        texts: Sequence[str],
        *,
        num_threads: int | None = None,
        allowed_special: SpecialArg | SpecialTokenStrategy = frozenset(),
        disallowed_special: SpecialArg = "all",
        max_token_length: int | None = None,
    ) -> list[list[Token]]:
        """
        Encode multiple texts in parallel.

        Special token arguments behave as in :meth:`encode`; the first text
        containing a disallowed special token raises.
        """
        strategy = resolve_policy(allowed_special, disallowed_special)
        encoder = functools.partial(
            self.encode, allowed_special=strategy, max_token_length=max_token_length
        )
        return self._map_batch(encoder, texts, num_threads)

    # ====================================================================
    # Decoding
    # ====================================================================

    def decode_bytes(self, tokens: Iterable[Token]) -> bytes:
        """
        Decode a sequence of tokens into bytes.

        :raises UnknownTokenError: If any token is unknown to both mappings.
        """
        return b"".join(self.decode_single_token_bytes(tok) for tok in tokens)

    def decode(self, tokens: Iterable[Token], errors: str = "replace") -> str:
        """
        Decode a sequence of tokens into text.

        Token bytes are concatenated first and decoded once, since a single
        token may hold an incomplete UTF-8 sequence.

        :param tokens: Token sequence to decode.
        :param errors: How to handle invalid UTF-8, e.g. "strict" or "replace".
        :returns: Decoded text.
        :raises UnknownTokenError: If any token is unknown to both mappings.
        """
        return self.decode_bytes(tokens).decode("utf-8", errors=errors)

    def decode_single_token_bytes(self, token: Token) -> bytes:
        """
        Decode one token into its bytes.

        Tokens are resolved first from the vocabulary and then from the
        special tokens.
        """
        b = self._decoder.get(token)
        if b is None:
            b = self._special_decoder.get(token)
        if b is None:
            raise UnknownTokenError(token)
        return b

    def decode_tokens_bytes(self, tokens: Iterable[Token]) -> list[bytes]:
        """Decode a sequence of tokens into a list of per-token bytes."""
        return [self.decode_single_token_bytes(tok) for tok in tokens]

    def decode_batch(
        self,
        batch: Sequence[Sequence[Token]],
        *,
        errors: str = "replace",
        num_threads: int | None = None,
    ) -> list[str]:
        """Decode multiple token sequences in parallel."""
        decoder = functools.partial(self.decode, errors=errors)
        return self._map_batch(decoder, batch, num_threads)

    # ====================================================================
    # Metadata
    # ====================================================================

    @property
    def eot_token(self) -> Token:
        """Token id of ``<|endoftext|>``."""
        return self._special_tokens["<|endoftext|>"]

    @functools.cached_property
    def special_tokens_set(self) -> frozenset[str]:
        return frozenset(self._special_tokens)

    @property
    def n_vocab(self) -> int:
        """Number of token ids, i.e. one more than the largest id."""
        return self.max_token_value + 1

    def is_special_token(self, token: Token) -> bool:
        return token in self._special_decoder

    def token_byte_values(self) -> list[bytes]:
        """Return every mergeable byte sequence, sorted."""
        return sorted(self._mergeable_ranks)

    # ====================================================================
    # Helpers
    # ====================================================================

    def _encode(
        self,
        text: str,
        allowed: Collection[str],
        disallowed: Collection[str],
        max_token_length: int | None,
    ) -> list[Token]:
        """Check special tokens over the whole text, then encode span by span."""
        matches = self._scanner.check(self._scanner.scan(text), allowed, disallowed)

        tokens: list[Token] = []
        for piece_toks in self._iter_pieces(text, matches):
            tokens.extend(piece_toks)
            if max_token_length is not None and len(tokens) >= max_token_length:
                del tokens[max_token_length:]
                break
        return tokens

    def _iter_pieces(
        self, text: str, matches: list[SpecialMatch]
    ) -> Iterator[list[Token]]:
        """Yield the tokens of each chunk and special token in text order."""
        start = 0
        for match in matches:
            # ordinary span before the special token
            yield from self._iter_ordinary(text[start : match.start])
            # special tokens have pre-determined encodings
            yield [match.token]
            start = match.end
        yield from self._iter_ordinary(text[start:])

    def _iter_ordinary(self, text: str) -> Iterator[list[Token]]:
        """Segment ``text`` and compress each chunk with BPE."""
        for chunk in self._segmenter.segment(text):
            yield byte_pair_encode(chunk.encode("utf-8"), self._mergeable_ranks)

    def _encode_ordinary(self, text: str) -> list[Token]:
        return [tok for piece_toks in self._iter_ordinary(text) for tok in piece_toks]

    def _map_batch(
        self, func: Callable[[T], R], items: Sequence[T], num_threads: int | None
    ) -> list[R]:
        """Apply ``func`` to every item, in input order, on a thread pool."""
        if not items:
            return []

        if num_threads is None:
            workers = _default_num_threads()
        else:
            workers = max(1, num_threads)  # "0" interpreted as 1 worker

        if workers == 1 or len(items) == 1:
            return [func(item) for item in items]

        with ThreadPoolExecutor(max_workers=min(workers, len(items))) as pool:
            return list(pool.map(func, items))


def _fix_surrogates(text: str) -> str:
    """Round-trip through UTF-16 so paired surrogates join and lone ones become U+FFFD."""
    return text.encode("utf-16", "surrogatepass").decode("utf-16", "replace")


def _validate_tables(
    mergeable_ranks: Ranks,
    special_tokens: SpecialTokens,
    explicit_n_vocab: int | None,
) -> None:
    """
    Check vocabulary invariants.

    :raises VocabularyError: If a single byte is missing, ids are not unique,
        special token ids collide with mergeable ids, or the total size does not
        match ``explicit_n_vocab``.
    """
    missing = [i for i in range(256) if bytes([i]) not in mergeable_ranks]
    if missing:
        raise VocabularyError(
            f"vocabulary must contain every single byte, {len(missing)} missing",
            vocab_size=len(mergeable_ranks),
        )

    if any(not b for b in mergeable_ranks):
        raise VocabularyError("vocabulary contains an empty byte sequence")

    ranks = set(mergeable_ranks.values())
    if len(ranks) != len(mergeable_ranks):
        raise VocabularyError(
            "mergeable token ids must be unique", vocab_size=len(mergeable_ranks)
        )

    if any(tok < 0 for tok in ranks):
        raise VocabularyError("token ids must be non-negative")

    if "" in special_tokens:
        raise VocabularyError("special tokens must be non-empty strings")

    for tok in special_tokens.values():
        if tok in ranks:
            raise VocabularyError(
                "special token id overlaps with vocabulary", invalid_tok=tok
            )

    if len(set(special_tokens.values())) != len(special_tokens):
        raise VocabularyError("special token ids must be unique")

    if explicit_n_vocab is not None:
        n_vocab = len(mergeable_ranks) + len(special_tokens)
        if n_vocab != explicit_n_vocab:
            raise VocabularyError(
                f"expected {explicit_n_vocab} tokens", vocab_size=n_vocab
            )
        max_tok = max(ranks | set(special_tokens.values()))
        if max_tok != explicit_n_vocab - 1:
            raise VocabularyError(
                "largest token id must be explicit_n_vocab - 1", invalid_tok=max_tok
            )

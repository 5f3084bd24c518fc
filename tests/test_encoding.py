"""Unit tests for Encoding encode/decode, special tokens, and edge cases."""

import time

import pytest

import litetok as ltok
from litetok.errors import (
    DisallowedSpecialTokenError,
    TokenizationError,
    UnknownTokenError,
    VocabularyError,
)

from conftest import TOY_SPECIAL_TOKENS, build_toy_ranks

MAGIC = "<|fim_prefix|>test<|fim_suffix|>"


# Encode
# ---------------------------------------------------------------------------


def test_encode_ordinary_text(toy_encoding):
    """Chunks are merged independently."""
    # "abc" is one token; " abcd" -> " " + "abc" + "d" since " a" loses to "ab"
    assert toy_encoding.encode("abc abcd") == [258, 32, 258, ord("d")]


def test_leading_space_merge(toy_encoding):
    """A chunk starting with a space can merge the space in."""
    assert toy_encoding.encode(" ax") == [261, ord("x")]


def test_encode_empty(toy_encoding):
    """Empty string encodes to empty list under every policy."""
    assert toy_encoding.encode("") == []
    assert toy_encoding.encode("", allowed_special="all") == []
    assert toy_encoding.encode("", disallowed_special=()) == []


def test_encode_is_deterministic(toy_encoding):
    """Encoding twice gives the same tokens."""
    text = "aaa bcd abcabc 123"
    assert toy_encoding.encode(text) == toy_encoding.encode(text)


# Special tokens
# ---------------------------------------------------------------------------


def test_default_rejects_first_special(toy_encoding):
    """By default the first special token in the text is reported."""
    with pytest.raises(DisallowedSpecialTokenError) as exc_info:
        toy_encoding.encode(MAGIC)
    assert str(exc_info.value) == (
        "The text contains a special token that is not allowed: <|fim_prefix|>"
    )


def test_explicit_defaults_reject(toy_encoding):
    """Passing the default arguments explicitly behaves the same."""
    with pytest.raises(DisallowedSpecialTokenError, match=r"<\|fim_prefix\|>$"):
        toy_encoding.encode(MAGIC, [], "all")


def test_allow_all(toy_encoding):
    """All special tokens become their ids."""
    tokens = toy_encoding.encode(MAGIC, allowed_special="all")
    assert tokens == [1001, *toy_encoding.encode("test"), 1002]


def test_partial_allow_set_reports_remaining(toy_encoding):
    """A token left out of the allowed set is still rejected."""
    with pytest.raises(DisallowedSpecialTokenError) as exc_info:
        toy_encoding.encode(MAGIC, ["<|fim_prefix|>"])
    assert exc_info.value.token == "<|fim_suffix|>"


def test_full_allow_set_matches_allow_all(toy_encoding):
    """Allowing every token present matches allow-all."""
    allowed = ["<|fim_prefix|>", "<|fim_suffix|>"]
    assert toy_encoding.encode(MAGIC, allowed) == toy_encoding.encode(
        MAGIC, allowed_special="all"
    )


def test_rejection_happens_before_encoding(toy_encoding):
    """A disallowed token late in the text still aborts the whole call."""
    text = "abc " * 100 + "<|endoftext|>"
    with pytest.raises(DisallowedSpecialTokenError):
        toy_encoding.encode(text, allowed_special={"<|fim_prefix|>"})


def test_disallowed_empty_encodes_as_text(toy_encoding):
    """Special token text is ordinary content when nothing is disallowed."""
    assert toy_encoding.encode(MAGIC, disallowed_special=()) == (
        toy_encoding.encode_ordinary(MAGIC)
    )
    assert 1001 not in toy_encoding.encode_ordinary(MAGIC)


def test_explicit_disallowed_subset(toy_encoding):
    """Only the listed tokens raise; others are ordinary text."""
    text = "<|x|><|endoftext|>"
    with pytest.raises(DisallowedSpecialTokenError, match="endoftext"):
        toy_encoding.encode(text, disallowed_special={"<|endoftext|>"})
    tokens = toy_encoding.encode(text, disallowed_special={"<|fim_prefix|>"})
    assert tokens == toy_encoding.encode_ordinary(text)


def test_longest_special_token_wins(toy_encoding):
    """A longer special token is preferred over its prefix."""
    assert toy_encoding.encode("<|x|>y<|x|>", allowed_special="all") == [1004, 1003]


def test_strategy_instance_accepted(toy_encoding):
    """A strategy object can be passed in place of allowed_special."""
    strategy = ltok.get_strategy("all")
    assert toy_encoding.encode(MAGIC, strategy) == toy_encoding.encode(MAGIC, "all")


def test_special_tokens_split_ordinary_chunks(toy_encoding):
    """Text on each side of a special token is segmented separately."""
    tokens = toy_encoding.encode("ab<|endoftext|>c", allowed_special="all")
    assert tokens == [256, 1000, ord("c")]


# Decode
# ---------------------------------------------------------------------------


def test_roundtrip(toy_encoding):
    """Encode then decode returns original text."""
    for text in [
        "abc abcd",
        "   \n\t  ",
        "café naïve 日本語 🎉",
        "👩‍👦‍👦 🇨🇿 🧑🏾‍💻️",
        "x",
    ]:
        assert toy_encoding.decode(toy_encoding.encode(text)) == text


def test_roundtrip_with_special_tokens(toy_encoding):
    """Special token ids decode back to their text."""
    tokens = toy_encoding.encode(MAGIC, allowed_special="all")
    assert toy_encoding.decode(tokens) == MAGIC


def test_decode_empty(toy_encoding):
    """Empty token list decodes to empty string."""
    assert toy_encoding.decode([]) == ""
    assert toy_encoding.decode_bytes([]) == b""


def test_decode_joins_partial_utf8(toy_encoding):
    """Multi-byte characters split across tokens decode once joined."""
    tokens = list("é".encode("utf-8"))
    assert toy_encoding.decode(tokens) == "é"
    assert toy_encoding.decode(tokens[:1]) == "�"
    with pytest.raises(UnicodeDecodeError):
        toy_encoding.decode(tokens[:1], errors="strict")


def test_decode_unknown_token(toy_encoding):
    """Ids in neither table raise UnknownTokenError."""
    with pytest.raises(UnknownTokenError) as exc_info:
        toy_encoding.decode([97, 5000])
    assert exc_info.value.invalid_tok == 5000
    assert isinstance(exc_info.value, KeyError)


def test_decode_tokens_bytes(toy_encoding):
    """Per-token bytes are returned in order."""
    assert toy_encoding.decode_tokens_bytes([258, 1000]) == [b"abc", b"<|endoftext|>"]


# Single tokens and metadata
# ---------------------------------------------------------------------------


def test_encode_single_token(toy_encoding):
    """Single tokens resolve from text, bytes, or special token text."""
    assert toy_encoding.encode_single_token("abc") == 258
    assert toy_encoding.encode_single_token(b"aa") == 259
    assert toy_encoding.encode_single_token("<|endoftext|>") == 1000
    with pytest.raises(KeyError):
        toy_encoding.encode_single_token("abcd")


def test_metadata(toy_encoding):
    """Vocabulary metadata reflects both tables."""
    assert toy_encoding.name == "toy"
    assert toy_encoding.max_token_value == 1004
    assert toy_encoding.n_vocab == 1005
    assert toy_encoding.eot_token == 1000
    assert toy_encoding.special_tokens_set == set(TOY_SPECIAL_TOKENS)
    assert toy_encoding.is_special_token(1003)
    assert not toy_encoding.is_special_token(258)
    assert len(toy_encoding.token_byte_values()) == 256 + 6
    assert repr(toy_encoding) == "<Encoding 'toy'>"


# Batch
# ---------------------------------------------------------------------------


def test_encode_batch_decode_batch(toy_encoding):
    """Batch encode and decode match single-text results."""
    texts = ["First.", "Second abc document.", "Third."]
    encoded = toy_encoding.encode_batch(texts, num_threads=2)
    assert encoded == [toy_encoding.encode(text) for text in texts]
    assert toy_encoding.decode_batch(encoded, num_threads=2) == texts


def test_encode_ordinary_batch(toy_encoding):
    """Ordinary batch encoding ignores special tokens."""
    texts = [MAGIC, "abc"]
    assert toy_encoding.encode_ordinary_batch(texts) == [
        toy_encoding.encode_ordinary(text) for text in texts
    ]


def test_encode_batch_propagates_policy(toy_encoding):
    """Batch encoding applies the same special token policy to every text."""
    with pytest.raises(DisallowedSpecialTokenError):
        toy_encoding.encode_batch(["abc", MAGIC], num_threads=2)
    tokens = toy_encoding.encode_batch([MAGIC], allowed_special="all")
    assert tokens == [toy_encoding.encode(MAGIC, "all")]


def test_empty_batch(toy_encoding):
    """Empty batches return empty lists."""
    assert toy_encoding.encode_batch([]) == []
    assert toy_encoding.decode_batch([]) == []


def test_num_threads_env(toy_encoding, monkeypatch):
    """LITETOK_NUM_THREADS sets the default batch worker count."""
    monkeypatch.setenv("LITETOK_NUM_THREADS", "1")
    texts = ["abc", "bcd"]
    assert toy_encoding.encode_batch(texts) == [toy_encoding.encode(t) for t in texts]


# Construction
# ---------------------------------------------------------------------------


def make_encoding(ranks, special_tokens=None, **kwargs):
    return ltok.Encoding(
        "bad",
        pat_str=ltok.get_pattern("cl100k_base"),
        mergeable_ranks=ranks,
        special_tokens=special_tokens or {},
        **kwargs,
    )


def test_missing_single_byte_rejected():
    """Every byte value must be in the vocabulary."""
    ranks = build_toy_ranks()
    del ranks[b"\x00"]
    with pytest.raises(VocabularyError):
        make_encoding(ranks)


def test_duplicate_ids_rejected():
    """Mergeable ids must be unique."""
    ranks = build_toy_ranks()
    ranks[b"zz"] = 256
    with pytest.raises(VocabularyError):
        make_encoding(ranks)


def test_special_id_collision_rejected():
    """Special token ids must not overlap mergeable ids."""
    with pytest.raises(VocabularyError, match="overlaps"):
        make_encoding(build_toy_ranks(), {"<|eot|>": 258})


def test_explicit_n_vocab_checked():
    """A size mismatch against explicit_n_vocab is rejected."""
    ranks = build_toy_ranks()
    make_encoding(ranks, {"<|eot|>": 262}, explicit_n_vocab=263)
    with pytest.raises(VocabularyError):
        make_encoding(ranks, {"<|eot|>": 262}, explicit_n_vocab=300)


def test_tables_are_read_only(toy_encoding):
    """The encoding never exposes mutable tables."""
    with pytest.raises(TypeError):
        toy_encoding._mergeable_ranks[b"zz"] = 9999


# Cost and unusual input
# ---------------------------------------------------------------------------


def test_long_letter_run_is_fast(toy_encoding):
    """An unbroken letter run, which the split pattern never caps, encodes quickly."""
    start = time.perf_counter()
    tokens = toy_encoding.encode_ordinary("a" * 20000)
    elapsed = time.perf_counter() - start
    assert tokens == [259] * 10000
    assert elapsed < 5.0


def test_long_repetitive_roundtrip(toy_encoding):
    """Long repetitive text round-trips."""
    text = "abcabc aaaa bcd\n" * 2000 + "x" * 5000
    assert toy_encoding.decode(toy_encoding.encode(text)) == text


def test_lone_surrogate_replaced(toy_encoding):
    """A lone surrogate is encoded as U+FFFD instead of failing."""
    assert toy_encoding.encode("a\ud83db") == toy_encoding.encode("a\ufffdb")
    assert toy_encoding.encode_ordinary("a\ud83db") == toy_encoding.encode("a\ufffdb")
    assert toy_encoding.decode(toy_encoding.encode("a\ud83db")) == "a\ufffdb"


def test_surrogate_pair_joined(toy_encoding):
    """A surrogate pair is encoded as the character it spells."""
    assert toy_encoding.encode("\ud83d\ude00") == toy_encoding.encode("😀")


def test_surrogate_with_special_tokens(toy_encoding):
    """The surrogate fallback keeps special token handling."""
    text = "\udc00<|endoftext|>"
    assert toy_encoding.encode(text, allowed_special="all") == [0xEF, 0xBF, 0xBD, 1000]
    with pytest.raises(DisallowedSpecialTokenError):
        toy_encoding.encode(text)


@pytest.mark.parametrize(
    "text",
    [
        "\x00\x01\x7f",
        "\r\n\r\n\t\x0b\x0c",
        "\u200b\u200d\ufeff",
        "a\u0301\u0308" * 50,
        "\U0001f3f3\ufe0f\u200d\U0001f308" * 20,
        "1" * 100 + "\u0663\u0664\u0665" + "\u216b",
        "'s'S'LL 'x ' '",
        "\U0010ffff",
    ],
)
def test_valid_input_never_raises(toy_encoding, text):
    """Unusual but valid text encodes and round-trips."""
    assert toy_encoding.decode(toy_encoding.encode(text)) == text


# Output length cap
# ---------------------------------------------------------------------------


def test_max_token_length_truncates(toy_encoding):
    """Encoding stops once the cap is reached."""
    text = "abc abc abc abc"
    full = toy_encoding.encode(text)
    assert toy_encoding.encode(text, max_token_length=3) == full[:3]
    assert toy_encoding.encode(text, max_token_length=0) == []
    assert toy_encoding.encode(text, max_token_length=100) == full


def test_max_token_length_counts_special_tokens(toy_encoding):
    """Special tokens count toward the cap."""
    tokens = toy_encoding.encode(MAGIC, allowed_special="all", max_token_length=1)
    assert tokens == [1001]


def test_max_token_length_still_checks_whole_text(toy_encoding):
    """A disallowed token past the cap still raises."""
    with pytest.raises(DisallowedSpecialTokenError):
        toy_encoding.encode("abc <|endoftext|>", max_token_length=1)


def test_max_token_length_in_batch(toy_encoding):
    """Batch encoding applies the cap to each text."""
    assert toy_encoding.encode_batch(["abc abc", "bcd"], max_token_length=1) == [
        [258],
        [257],
    ]


def test_negative_max_token_length(toy_encoding):
    """A negative cap raises TokenizationError."""
    with pytest.raises(TokenizationError):
        toy_encoding.encode("abc", max_token_length=-1)

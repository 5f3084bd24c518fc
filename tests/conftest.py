"""Shared fixtures: a small hand-built vocabulary that needs no downloads."""

import pytest

import litetok as ltok

# merges on top of the 256 single bytes; ids double as merge ranks
TOY_MERGES = {
    b"ab": 256,
    b"bc": 257,
    b"abc": 258,
    b"aa": 259,
    b"cd": 260,
    b" a": 261,
}

TOY_SPECIAL_TOKENS = {
    "<|endoftext|>": 1000,
    "<|fim_prefix|>": 1001,
    "<|fim_suffix|>": 1002,
    "<|x|>": 1003,
    "<|x|>y": 1004,
}


def build_toy_ranks() -> dict[bytes, int]:
    ranks = {bytes([i]): i for i in range(256)}
    ranks.update(TOY_MERGES)
    return ranks


@pytest.fixture
def toy_ranks():
    """Return the toy rank table."""
    return build_toy_ranks()


@pytest.fixture
def toy_encoding():
    """Return an encoding over the toy vocabulary with the cl100k split pattern."""
    return ltok.Encoding(
        "toy",
        pat_str=ltok.get_pattern("cl100k_base"),
        mergeable_ranks=build_toy_ranks(),
        special_tokens=TOY_SPECIAL_TOKENS,
    )

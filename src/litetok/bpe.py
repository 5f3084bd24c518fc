"""
Core Byte Pair Encoding (BPE) operations.

Merges are driven by a rank table: the rank of a byte sequence is its token id,
and a lower rank merges earlier.
"""

import heapq
from itertools import pairwise

from .types import Ranks, Token, TokenBytes


def _byte_pair_merge(piece: TokenBytes, ranks: Ranks) -> list[int]:
    """
    Compute part boundaries for ``piece`` by greedily merging ranked pairs.

    Starts with every byte as its own part and repeatedly merges the adjacent
    pair whose combined bytes has the lowest rank. When several pairs share
    the lowest rank the leftmost one is merged first. Stops when no adjacent
    combination is in ``ranks``.

    Parts form a linked list keyed by their start offset, and candidate pairs
    sit in a heap ordered by ``(rank, start)``. A merge only changes the pairs
    on either side of it, so each merge costs O(log n) instead of a full rescan.

    :param piece: Raw bytes of one chunk.
    :param ranks: Mapping from byte sequence to merge rank.
    :return: Sorted boundary offsets, starting at 0 and ending at ``len(piece)``.
    """
    n = len(piece)
    # start offset of the next / previous part, indexed by part start
    nxt = list(range(1, n + 1))
    prv = list(range(-1, n - 1))
    alive = [True] * n

    def pair_rank(start: int) -> Token | None:
        """Rank of the part at ``start`` joined with the part after it."""
        right = nxt[start]
        if right >= n:
            return None
        return ranks.get(piece[start : nxt[right]])

    # rank of the pair beginning at each part start
    cur = [pair_rank(i) for i in range(n)]
    heap = [(rank, i) for i, rank in enumerate(cur) if rank is not None]
    heapq.heapify(heap)

    while heap:
        rank, start = heapq.heappop(heap)
        # stale entry: part was absorbed or its pair changed since the push.
        # ranks are unique per byte sequence, so an equal rank means the same pair
        if not alive[start] or cur[start] != rank:
            continue

        # absorb the right part
        right = nxt[start]
        alive[right] = False
        nxt[start] = nxt[right]
        if nxt[right] < n:
            prv[nxt[right]] = start

        cur[start] = pair_rank(start)
        if cur[start] is not None:
            heapq.heappush(heap, (cur[start], start))

        left = prv[start]
        if left >= 0:
            cur[left] = pair_rank(left)
            if cur[left] is not None:
                heapq.heappush(heap, (cur[left], left))

    boundaries = [0]
    while boundaries[-1] < n:
        boundaries.append(nxt[boundaries[-1]])
    return boundaries


def byte_pair_split(piece: TokenBytes, ranks: Ranks) -> list[TokenBytes]:
    """Split ``piece`` into the byte sequences BPE would emit for it."""
    if len(piece) <= 1:
        return [piece] if piece else []
    return [piece[start:end] for start, end in pairwise(_byte_pair_merge(piece, ranks))]


def byte_pair_encode(piece: TokenBytes, ranks: Ranks) -> list[Token]:
    """
    Encode one chunk's bytes into token ids.

    A piece that is itself a vocabulary entry is emitted directly. Otherwise the
    greedy merge runs and each resulting part is looked up; single bytes are
    always present so the lookup cannot fail for a well-formed rank table.

    :param piece: Raw bytes of one chunk.
    :param ranks: Mapping from byte sequence to token id.
    :return: Token ids whose bytes concatenate back to ``piece``.
    """
    if not piece:
        return []

    tok = ranks.get(piece)
    if tok is not None:
        return [tok]

    return [
        ranks[piece[start:end]]
        for start, end in pairwise(_byte_pair_merge(piece, ranks))
    ]

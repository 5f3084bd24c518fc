"""
Core types for tokenization.
"""

from collections.abc import Mapping
from typing import TypeAlias

Token: TypeAlias = int
TokenBytes: TypeAlias = bytes
Ranks: TypeAlias = Mapping[TokenBytes, Token]
SpecialTokens: TypeAlias = Mapping[str, Token]

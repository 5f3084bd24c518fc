"""LiteTok: a lightweight byte-level BPE codec compatible with cl100k_base."""

from .encoding import Encoding
from .errors import (
    DisallowedSpecialTokenError,
    LiteTokError,
    PatternError,
    SpecialTokenError,
    StrategyError,
    TokenizationError,
    UnknownTokenError,
    VocabularyError,
)
from .factory import (
    CL100K_SPECIAL_TOKENS,
    cl100k_base,
    encoding_for_model,
    encoding_name_for_model,
    get_encoding,
    list_encoding_names,
)
from .pattern import Segmenter, TokenPattern, get_pattern, list_patterns
from .special import SpecialMatch, SpecialTokenScanner
from .strategy import (
    AllowAllStrategy,
    AllowCustomStrategy,
    AllowNoneRaiseStrategy,
    AllowNoneStrategy,
    SpecialTokenStrategy,
    get_strategy,
    list_strategies,
)

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("litetok")
except PackageNotFoundError:
    __version__ = "dev"

__all__ = [
    "Encoding",
    "Segmenter",
    "SpecialTokenScanner",
    "SpecialMatch",
    "TokenPattern",
    "SpecialTokenStrategy",
    "AllowAllStrategy",
    "AllowNoneStrategy",
    "AllowNoneRaiseStrategy",
    "AllowCustomStrategy",
    "CL100K_SPECIAL_TOKENS",
    "LiteTokError",
    "SpecialTokenError",
    "DisallowedSpecialTokenError",
    "VocabularyError",
    "UnknownTokenError",
    "PatternError",
    "StrategyError",
    "TokenizationError",
    "cl100k_base",
    "encoding_for_model",
    "encoding_name_for_model",
    "get_encoding",
    "get_pattern",
    "get_strategy",
    "list_encoding_names",
    "list_patterns",
    "list_strategies",
]

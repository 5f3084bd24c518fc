"""Factory functions for creating encodings."""

from collections.abc import Callable
from typing import Final, Literal

from .encoding import Encoding
from .errors import VocabularyError
from .pattern import TokenPattern
from .types import Ranks, Token

ENDOFTEXT: Final[str] = "<|endoftext|>"
FIM_PREFIX: Final[str] = "<|fim_prefix|>"
FIM_MIDDLE: Final[str] = "<|fim_middle|>"
FIM_SUFFIX: Final[str] = "<|fim_suffix|>"
ENDOFPROMPT: Final[str] = "<|endofprompt|>"

CL100K_BASE: Final[str] = "cl100k_base"

CL100K_SPECIAL_TOKENS: Final[dict[str, Token]] = {
    ENDOFTEXT: 100257,
    FIM_PREFIX: 100258,
    FIM_MIDDLE: 100259,
    FIM_SUFFIX: 100260,
    ENDOFPROMPT: 100276,
}


def cl100k_base(mergeable_ranks: Ranks) -> Encoding:
    """
    Create the ``cl100k_base`` encoding from its loaded rank table.

    Loading the rank file is left to the caller, e.g.
    ``tiktoken.load.load_tiktoken_bpe`` on the published ``cl100k_base.tiktoken``.

    :param mergeable_ranks: Byte sequence to token id for all 100256 mergeable tokens.
    :return: Configured encoding.
    :raises VocabularyError: If the rank table is malformed.
    """
    return Encoding(
        CL100K_BASE,
        pat_str=TokenPattern.CL100K.value,
        mergeable_ranks=mergeable_ranks,
        special_tokens=CL100K_SPECIAL_TOKENS,
    )


EncodingName = Literal["cl100k_base"]

_ENCODING_CONSTRUCTORS: Final[dict[str, Callable[[Ranks], Encoding]]] = {
    CL100K_BASE: cl100k_base,
}


def list_encoding_names() -> list[str]:
    """Return names of all encodings that can be constructed."""
    return list(_ENCODING_CONSTRUCTORS.keys())


def get_encoding(name: EncodingName, mergeable_ranks: Ranks) -> Encoding:
    """
    Create an encoding by name from its loaded rank table.

    :param name: Encoding name, e.g. "cl100k_base".
    :param mergeable_ranks: Byte sequence to token id.
    :return: Configured encoding.
    :raises VocabularyError: If the name is unknown or the rank table is malformed.

    .. code-block:: python

        ranks = load_tiktoken_bpe("cl100k_base.tiktoken")
        enc = get_encoding("cl100k_base", ranks)
        tokens = enc.encode("hello world")
    """
    if name not in _ENCODING_CONSTRUCTORS:
        raise VocabularyError(
            f"unknown encoding {name!r}, available: {list_encoding_names()}"
        )
    return _ENCODING_CONSTRUCTORS[name](mergeable_ranks)


# models that use each encoding; exact names are checked before prefixes
MODEL_TO_ENCODING: Final[dict[str, EncodingName]] = {
    "gpt-4": CL100K_BASE,
    "gpt-3.5-turbo": CL100K_BASE,
    "gpt-3.5": CL100K_BASE,
    "gpt-35-turbo": CL100K_BASE,
    "davinci-002": CL100K_BASE,
    "babbage-002": CL100K_BASE,
    "text-embedding-ada-002": CL100K_BASE,
    "text-embedding-3-small": CL100K_BASE,
    "text-embedding-3-large": CL100K_BASE,
}

MODEL_PREFIX_TO_ENCODING: Final[dict[str, EncodingName]] = {
    "gpt-4-": CL100K_BASE,
    "gpt-3.5-turbo-": CL100K_BASE,
    "gpt-35-turbo-": CL100K_BASE,
    "ft:gpt-4": CL100K_BASE,
    "ft:gpt-3.5-turbo": CL100K_BASE,
    "ft:davinci-002": CL100K_BASE,
    "ft:babbage-002": CL100K_BASE,
}


def encoding_name_for_model(model_name: str) -> EncodingName:
    """
    Return the name of the encoding used by a model.

    :raises VocabularyError: If the model cannot be mapped to an encoding.
    """
    if model_name in MODEL_TO_ENCODING:
        return MODEL_TO_ENCODING[model_name]

    # versioned and fine-tuned names, e.g. "gpt-4-0613"
    for prefix, enc_name in MODEL_PREFIX_TO_ENCODING.items():
        if model_name.startswith(prefix):
            return enc_name

    raise VocabularyError(f"could not map model {model_name!r} to an encoding")


def encoding_for_model(model_name: str, mergeable_ranks: Ranks) -> Encoding:
    """
    Create the encoding used by a model from its loaded rank table.

    .. code-block:: python

        enc = encoding_for_model("gpt-4", ranks)
    """
    return get_encoding(encoding_name_for_model(model_name), mergeable_ranks)

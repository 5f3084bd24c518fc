"""Special token permission policies for encoding."""

from abc import ABC, abstractmethod
from collections.abc import Collection
import logging
import sys
from typing import Final, Literal, TypeAlias, overload

if sys.version_info >= (3, 12):
    from typing import override
else:
    from typing_extensions import override

from .errors import StrategyError

log = logging.getLogger(__name__)

SpecialSet: TypeAlias = frozenset[str]
SpecialArg: TypeAlias = Literal["all"] | Collection[str]

# =========================================================================================

# special token handling strategies


class SpecialTokenStrategy(ABC):
    """
    Base strategy for handling special tokens during encoding.

    A strategy resolves the registered special tokens into the set that may be
    encoded as special token ids and the set whose presence is an error.
    Registered tokens in neither set are encoded as ordinary text.
    """

    @abstractmethod
    def handle(self, special_toks: Collection[str]) -> tuple[SpecialSet, SpecialSet]:
        """Return ``(allowed, disallowed)`` special token strings."""


class AllowAllStrategy(SpecialTokenStrategy):
    """Strategy that allows all registered special tokens."""

    @override
    def handle(self, special_toks: Collection[str]) -> tuple[SpecialSet, SpecialSet]:
        """Allow every registered special token."""
        if not special_toks:
            log.warning("no special tokens registered")
        return frozenset(special_toks), frozenset()


class AllowNoneRaiseStrategy(SpecialTokenStrategy):
    """Strategy that raises if special tokens are found in text to be encoded."""

    @override
    def handle(self, special_toks: Collection[str]) -> tuple[SpecialSet, SpecialSet]:
        """Disallow every registered special token."""
        return frozenset(), frozenset(special_toks)


class AllowNoneStrategy(SpecialTokenStrategy):
    """Strategy that encodes special token text as normal content."""

    @override
    def handle(self, special_toks: Collection[str]) -> tuple[SpecialSet, SpecialSet]:
        """Neither allow nor disallow any special token."""
        return frozenset(), frozenset()


class AllowCustomStrategy(SpecialTokenStrategy):
    """Strategy that allows only specified special tokens."""

    def __init__(
        self,
        allowed_subset: SpecialArg,
        disallowed_subset: SpecialArg = "all",
    ) -> None:
        """
        Store the special token subsets used during encoding.

        :param allowed_subset: Tokens encoded as special token ids, or "all".
        :param disallowed_subset: Tokens that raise when found, or "all" for
            every registered token outside ``allowed_subset``.
        """
        super().__init__()
        self.allowed_subset = _check_arg(allowed_subset, "allowed_subset")
        self.disallowed_subset = _check_arg(disallowed_subset, "disallowed_subset")

    @override
    def handle(self, special_toks: Collection[str]) -> tuple[SpecialSet, SpecialSet]:
        """Resolve the configured subsets against the registered special tokens."""
        if self.allowed_subset == "all":
            allowed = frozenset(special_toks)
        else:
            allowed = frozenset(self.allowed_subset)
            unknown = allowed.difference(special_toks)
            if unknown:
                log.debug(f"allowed tokens not registered: {sorted(unknown)}")

        if self.disallowed_subset == "all":
            disallowed = frozenset(special_toks).difference(allowed)
        else:
            disallowed = frozenset(self.disallowed_subset)
        return allowed, disallowed

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"allowed_subset={self.allowed_subset!r}, "
            f"disallowed_subset={self.disallowed_subset!r})"
        )


def _check_arg(value: SpecialArg, name: str) -> SpecialArg:
    """Reject bare strings other than "all" so they are not read as character sets."""
    if isinstance(value, str):
        if value != "all":
            raise StrategyError(f'{name} must be "all" or a collection of strings')
        return value
    return frozenset(value)


StrategyName = Literal["all", "none", "none-raise", "custom"]

_SPECIAL_TOKEN_STRATEGIES: Final[dict[str, type[SpecialTokenStrategy]]] = {
    "all": AllowAllStrategy,
    "none": AllowNoneStrategy,
    "none-raise": AllowNoneRaiseStrategy,
    "custom": AllowCustomStrategy,
}


def list_strategies() -> list[str]:
    """Return available special token strategy names."""
    return list(_SPECIAL_TOKEN_STRATEGIES.keys())


@overload
def get_strategy(
    name: Literal["all", "none", "none-raise"],
) -> SpecialTokenStrategy: ...


@overload
def get_strategy(
    name: Literal["custom"], allowed_subset: Collection[str]
) -> AllowCustomStrategy: ...


def get_strategy(
    name: StrategyName = "none-raise", allowed_subset: Collection[str] | None = None
) -> SpecialTokenStrategy:
    """
    Create a special token strategy by name.

    :param name: Strategy identifier: "all", "none", "none-raise", or "custom".
    :param allowed_subset: Required for "custom"; tokens allowed during encoding.
    :raises StrategyError: If name is unknown or allowed_subset is missing for custom.

    .. code-block:: python

        strategy = get_strategy("all")
        strategy = get_strategy("custom", allowed_subset={"<|endoftext|>"})
    """
    if name not in _SPECIAL_TOKEN_STRATEGIES:
        raise StrategyError(
            "unknown strategy name",
            invalid_name=name,
            available_strats=list(_SPECIAL_TOKEN_STRATEGIES.keys()),
        )

    if name == "custom":
        if allowed_subset is None:
            raise StrategyError("allowed_subset is required for custom strategy")
        return AllowCustomStrategy(allowed_subset)

    return _SPECIAL_TOKEN_STRATEGIES[name]()


def resolve_policy(
    allowed_special: SpecialArg | SpecialTokenStrategy = frozenset(),
    disallowed_special: SpecialArg = "all",
) -> SpecialTokenStrategy:
    """
    Map ``encode`` keyword arguments onto a strategy.

    A strategy instance passed as ``allowed_special`` is returned unchanged.
    The defaults disallow every registered special token.
    """
    if isinstance(allowed_special, SpecialTokenStrategy):
        return allowed_special

    allowed = _check_arg(allowed_special, "allowed_special")
    disallowed = _check_arg(disallowed_special, "disallowed_special")

    match allowed, disallowed:
        case "all", "all":
            return AllowAllStrategy()
        case frozenset(), "all" if not allowed:
            return AllowNoneRaiseStrategy()
        case frozenset(), frozenset() if not allowed and not disallowed:
            return AllowNoneStrategy()
        case _:
            return AllowCustomStrategy(allowed, disallowed)


__all__ = [
    "StrategyName",
    "SpecialTokenStrategy",
    "AllowAllStrategy",
    "AllowNoneStrategy",
    "AllowNoneRaiseStrategy",
    "AllowCustomStrategy",
    "list_strategies",
    "get_strategy",
    "resolve_policy",
]

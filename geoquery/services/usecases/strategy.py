"""Ordered search strategies and the generic first-success combinator."""
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict

from geoquery.services.map.errors import MapServiceError

logger = logging.getLogger(__name__)

S = TypeVar("S")
R = TypeVar("R")


class SearchStrategy(BaseModel):
    """One (transport, time budget) search attempt"""
    model_config = ConfigDict(frozen=True)

    transport: str
    time_minutes: int


def _strategies(pairs: Iterable[Tuple[str, int]]) -> List[SearchStrategy]:
    seen = set()
    result = []
    for transport, minutes in pairs:
        if (transport, minutes) in seen:
            continue
        seen.add((transport, minutes))
        result.append(SearchStrategy(transport=transport, time_minutes=minutes))
    return result


# Walking/driving alternating, 10 -> 60 minutes
NEAREST_STRATEGIES: Tuple[SearchStrategy, ...] = tuple(
    _strategies((t, m) for m in (10, 20, 30, 45, 60) for t in ("walking", "driving"))
)


def prefer_transport(
    strategies: Sequence[SearchStrategy], transport: Optional[str]
) -> List[SearchStrategy]:
    """Within each time tier, try the requested transport before the others"""
    tiers: Dict[int, List[SearchStrategy]] = {}
    for strategy in strategies:
        tiers.setdefault(strategy.time_minutes, []).append(strategy)
    return [
        strategy
        for tier in tiers.values()
        for strategy in sorted(tier, key=lambda s: s.transport != transport)
    ]


def near_poi_strategies(time_constraint: int) -> List[SearchStrategy]:
    """Caller's budget first, then 30 and 60 minutes, walking before driving"""
    return _strategies(
        (t, m) for m in (time_constraint, 30, 60) for t in ("walking", "driving")
    )


async def first_success(
    strategies: Sequence[S],
    attempt: Callable[[S], Awaitable[Optional[R]]],
    *,
    label: str = "search",
) -> Optional[Tuple[S, R]]:
    """Run strategies in order; return the first non-empty result and its strategy.

    A collaborator failure inside one strategy is logged and the next one is
    tried. Returns None once the list is exhausted.
    """
    for strategy in strategies:
        try:
            result = await attempt(strategy)
        except MapServiceError as exc:
            logger.warning("%s strategy %s failed: %s", label, strategy, exc)
            continue
        if result:
            logger.info("%s succeeded with strategy %s", label, strategy)
            return strategy, result
        logger.debug("%s strategy %s yielded nothing", label, strategy)
    return None

"""Random primitives used by every stochastic model in the generator."""

import math
import random
from typing import Callable, Sequence, TypeVar

T = TypeVar("T")


def weighted_choice(
    items: Sequence[T],
    weight_fn: Callable[[T], float] = lambda item: item.weight,
    rng: random.Random | None = None,
) -> T:
    """Pick one item with probability proportional to ``weight_fn(item)``.

    Uses cumulative subtraction over a single uniform draw. If floating-point
    rounding leaves a remainder after the last item, the last item is returned.
    """
    if not items:
        raise ValueError("weighted_choice requires at least one item")
    rng = rng or random
    weights = [weight_fn(item) for item in items]
    remaining = rng.random() * sum(weights)
    for item, weight in zip(items, weights):
        remaining -= weight
        if remaining <= 0:
            return item
    return items[-1]


def random_choice(items: Sequence[T], rng: random.Random | None = None) -> T:
    if not items:
        raise ValueError("random_choice requires at least one item")
    rng = rng or random
    return items[int(rng.random() * len(items))]


def standard_normal(rng: random.Random | None = None) -> float:
    """Box-Muller transform over two independent uniform draws."""
    rng = rng or random
    u1 = 1.0 - rng.random()  # (0, 1] keeps the log finite
    u2 = rng.random()
    return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)


def log_normal(mean: float, stddev: float, rng: random.Random | None = None) -> float:
    """Log-normal draw anchored on ``mean`` as the median of the distribution."""
    return math.exp(math.log(mean) + stddev * standard_normal(rng))


def uniform(low: float, high: float, rng: random.Random | None = None) -> float:
    rng = rng or random
    return low + rng.random() * (high - low)

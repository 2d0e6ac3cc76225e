from __future__ import annotations
import math
from dataclasses import dataclass


@dataclass(frozen=True)
class WorkingSize:
    width: int
    height: int

    @property
    def aspect_ratio(self) -> str:
        d = math.gcd(self.width, self.height)
        return f"{self.width // d}:{self.height // d}"


def round_to_multiple(value: float, granularity: int) -> int:
    return int(round(value / granularity)) * granularity


def normalize_dimensions(
    width: int,
    height: int,
    *,
    granularity: int = 32,
    min_side: int = 512,
    max_side: int = 1536,
) -> WorkingSize:
    """Fit an image size into a provider's working-size constraints.

    The longer side is scaled down to ``max_side`` if needed, the shorter
    side is scaled up toward ``min_side`` as long as the longer side still
    fits, and both sides are rounded to ``granularity``.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if granularity <= 0 or min_side > max_side:
        raise ValueError("Invalid provider size constraints")

    scale = 1.0
    longest, shortest = max(width, height), min(width, height)
    if longest > max_side:
        scale = max_side / longest
    elif shortest < min_side:
        scale = min(min_side / shortest, max_side / longest)

    ceiling = (max_side // granularity) * granularity

    def fit(side: float) -> int:
        return max(granularity, min(ceiling, round_to_multiple(side, granularity)))

    return WorkingSize(width=fit(width * scale), height=fit(height * scale))

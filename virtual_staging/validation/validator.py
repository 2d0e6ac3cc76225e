from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional
from virtual_staging.core.workflow import (
    ImageRef,
    StageConfig,
    StageKind,
    ValidationVerdict,
    Violation,
    ViolationTag,
)
from virtual_staging.validation.heuristics import (
    CIRCULATION_LIMIT,
    COLOR_DRIFT_LIMIT,
    WALL_DENSITY_LIMIT,
    WINDOW_VERTICAL_LIMIT,
    ImageComparison,
)

log = logging.getLogger(__name__)

Check = Callable[[ImageComparison, StageConfig], Optional[Violation]]


def check_color_drift(cmp: ImageComparison, stage: StageConfig) -> Violation | None:
    drift = cmp.color_drift
    if drift > COLOR_DRIFT_LIMIT:
        return Violation(
            ViolationTag.COLOR_DRIFT_DETECTED,
            f"Mean color shifted by {drift:.0%}; architecture was probably repainted",
            measured=drift,
            limit=COLOR_DRIFT_LIMIT,
        )
    return None


def check_wall_decor(cmp: ImageComparison, stage: StageConfig) -> Violation | None:
    if cmp.has_wall_decor:
        d = cmp.wall_decor_signal
        return Violation(
            ViolationTag.WALL_DECOR_PRESENT,
            f"New edges in the wall band (density +{d.density:.3f})",
            measured=d.density,
            limit=WALL_DENSITY_LIMIT,
        )
    return None


def check_window_treatment(cmp: ImageComparison, stage: StageConfig) -> Violation | None:
    if cmp.has_window_treatment:
        d = cmp.window_signal
        return Violation(
            ViolationTag.WINDOW_TREATMENT_PRESENT,
            f"New vertical folds in the window band (+{d.vertical:.3f})",
            measured=d.vertical,
            limit=WINDOW_VERTICAL_LIMIT,
        )
    return None


def check_circulation(cmp: ImageComparison, stage: StageConfig) -> Violation | None:
    occupancy = cmp.walkway_occupancy
    if occupancy > CIRCULATION_LIMIT:
        return Violation(
            ViolationTag.CIRCULATION_BLOCKED,
            f"Walkway {occupancy:.0%} covered",
            measured=occupancy,
            limit=CIRCULATION_LIMIT,
        )
    return None


def check_item_count(cmp: ImageComparison, stage: StageConfig) -> Violation | None:
    count = cmp.item_count
    if count < stage.min_items or count > stage.max_items:
        return Violation(
            ViolationTag.ITEM_COUNT_OUT_OF_RANGE,
            f"Estimated {count} new items, expected {stage.min_items}-{stage.max_items}",
            measured=float(count),
            limit=float(stage.max_items if count > stage.max_items else stage.min_items),
        )
    return None


DEFAULT_CHECKS: Dict[str, Check] = {
    "color_drift": check_color_drift,
    "wall_decor": check_wall_decor,
    "window_treatment": check_window_treatment,
    "circulation": check_circulation,
    "item_count": check_item_count,
}

_COMMON = ("item_count", "color_drift", "circulation")

# Which named checks run for each stage kind.
DEFAULT_RULES: Dict[StageKind, tuple[str, ...]] = {
    StageKind.PRIMARY_FURNITURE: _COMMON + ("wall_decor", "window_treatment"),
    StageKind.COMPLEMENTARY: _COMMON + ("wall_decor", "window_treatment"),
    StageKind.WINDOW_TREATMENT: _COMMON + ("wall_decor",),
    StageKind.WALL_DECOR: _COMMON + ("window_treatment",),
}


@dataclass
class StageValidator:
    """Checks one stage attempt's output against the stage's rules.

    Checks are named so a stronger detector can replace one without
    touching the workflow.
    """
    load_image: Callable[[ImageRef], bytes]
    checks: Dict[str, Check] = field(default_factory=lambda: dict(DEFAULT_CHECKS))
    rules: Dict[StageKind, tuple[str, ...]] = field(default_factory=lambda: dict(DEFAULT_RULES))

    def validate(self, before: ImageRef, after: ImageRef, stage: StageConfig) -> ValidationVerdict:
        return self.validate_bytes(self.load_image(before), self.load_image(after), stage)

    def validate_bytes(self, before: bytes, after: bytes, stage: StageConfig) -> ValidationVerdict:
        cmp = ImageComparison.from_bytes(before, after)
        violations = []
        for name in self.rules[stage.kind]:
            violation = self.checks[name](cmp, stage)
            if violation is not None:
                violations.append(violation)
        verdict = ValidationVerdict(item_count_estimate=cmp.item_count, detected_violations=tuple(violations))
        log.debug("Validated %s: items=%d violations=%s", stage.kind.value, verdict.item_count_estimate,
                  [t.value for t in verdict.tags])
        return verdict

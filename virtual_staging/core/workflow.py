from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# One initial attempt plus one corrective retry per stage.
MAX_STAGE_ATTEMPTS = 2


class RunStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class DrivingMode(str, Enum):
    BLOCKING = "blocking"
    CALLBACK = "callback"


class StageKind(str, Enum):
    PRIMARY_FURNITURE = "primary_furniture"
    COMPLEMENTARY = "complementary"
    WINDOW_TREATMENT = "window_treatment"
    WALL_DECOR = "wall_decor"


# Fixed execution order of a full plan.
STAGE_ORDER: tuple[StageKind, ...] = (
    StageKind.PRIMARY_FURNITURE,
    StageKind.COMPLEMENTARY,
    StageKind.WINDOW_TREATMENT,
    StageKind.WALL_DECOR,
)


class RoomCategory(str, Enum):
    LIVING_ROOM = "living_room"
    BEDROOM = "bedroom"
    KITCHEN = "kitchen"
    BATHROOM = "bathroom"
    DINING_ROOM = "dining_room"
    HOME_OFFICE = "home_office"
    KIDS_ROOM = "kids_room"
    OUTDOOR = "outdoor"


class StyleProfile(str, Enum):
    STANDARD = "standard"
    MODERN = "modern"
    SCANDINAVIAN = "scandinavian"
    INDUSTRIAL = "industrial"
    MIDCENTURY = "midcentury"
    LUXURY = "luxury"
    COASTAL = "coastal"
    FARMHOUSE = "farmhouse"


class ViolationTag(str, Enum):
    WALL_DECOR_PRESENT = "wall-decor-present"
    WINDOW_TREATMENT_PRESENT = "window-treatment-present"
    CIRCULATION_BLOCKED = "circulation-blocked"
    COLOR_DRIFT_DETECTED = "color-drift-detected"
    ITEM_COUNT_OUT_OF_RANGE = "item-count-out-of-range"


@dataclass(frozen=True)
class ImageRef:
    url: str
    width: int
    height: int

    def to_dict(self) -> dict[str, Any]:
        return {"url": self.url, "width": self.width, "height": self.height}

    @staticmethod
    def from_dict(data: dict[str, Any] | None) -> ImageRef | None:
        if not data:
            return None
        return ImageRef(url=data["url"], width=int(data["width"]), height=int(data["height"]))


@dataclass(frozen=True)
class StageSelection:
    """Which stage kinds a run keeps. Everything is kept by default."""
    primary_furniture: bool = True
    complementary: bool = True
    window_treatment: bool = True
    wall_decor: bool = True

    def includes(self, kind: StageKind) -> bool:
        return bool(getattr(self, kind.value))

    def kinds(self) -> list[StageKind]:
        return [k for k in STAGE_ORDER if self.includes(k)]

    def to_dict(self) -> dict[str, bool]:
        return {k.value: self.includes(k) for k in STAGE_ORDER}


@dataclass(frozen=True)
class StageConfig:
    kind: StageKind
    min_items: int
    max_items: int
    allowed_categories: tuple[str, ...]
    instruction: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "min_items": self.min_items,
            "max_items": self.max_items,
            "allowed_categories": list(self.allowed_categories),
            "instruction": self.instruction,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> StageConfig:
        return StageConfig(
            kind=StageKind(data["kind"]),
            min_items=int(data["min_items"]),
            max_items=int(data["max_items"]),
            allowed_categories=tuple(data.get("allowed_categories") or ()),
            instruction=data["instruction"],
        )


@dataclass(frozen=True)
class StagingPlan:
    room_category: RoomCategory
    style_profile: StyleProfile
    stages: tuple[StageConfig, ...]

    def __len__(self) -> int:
        return len(self.stages)

    @property
    def kinds(self) -> list[StageKind]:
        return [s.kind for s in self.stages]

    def to_dict(self) -> dict[str, Any]:
        return {
            "room_category": self.room_category.value,
            "style_profile": self.style_profile.value,
            "stages": [s.to_dict() for s in self.stages],
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> StagingPlan:
        return StagingPlan(
            room_category=RoomCategory(data["room_category"]),
            style_profile=StyleProfile(data["style_profile"]),
            stages=tuple(StageConfig.from_dict(s) for s in data["stages"]),
        )


@dataclass(frozen=True)
class Violation:
    tag: ViolationTag
    message: str
    measured: float | None = None
    limit: float | None = None


@dataclass(frozen=True)
class ValidationVerdict:
    item_count_estimate: int
    detected_violations: tuple[Violation, ...] = ()

    @property
    def passed(self) -> bool:
        return not self.detected_violations

    @property
    def tags(self) -> list[ViolationTag]:
        return [v.tag for v in self.detected_violations]


@dataclass(frozen=True)
class StageResult:
    """Audit record of one stage attempt. Retries append a new record."""
    stage_index: int
    stage_kind: StageKind
    succeeded: bool
    items_added: int
    validation_passed: bool
    validation_violations: tuple[ViolationTag, ...] = ()
    retry_count: int = 0
    result_image: ImageRef | None = None
    job_handle: str | None = None
    error: str | None = None

    def __post_init__(self):
        if self.succeeded != (self.result_image is not None):
            raise ValueError("result_image must be present exactly when the attempt succeeded")

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage_index": self.stage_index,
            "stage_kind": self.stage_kind.value,
            "succeeded": self.succeeded,
            "items_added": self.items_added,
            "validation_passed": self.validation_passed,
            "validation_violations": [t.value for t in self.validation_violations],
            "retry_count": self.retry_count,
            "result_image": self.result_image.to_dict() if self.result_image else None,
            "job_handle": self.job_handle,
            "error": self.error,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> StageResult:
        return StageResult(
            stage_index=int(data["stage_index"]),
            stage_kind=StageKind(data["stage_kind"]),
            succeeded=bool(data["succeeded"]),
            items_added=int(data.get("items_added", 0)),
            validation_passed=bool(data.get("validation_passed", False)),
            validation_violations=tuple(ViolationTag(t) for t in data.get("validation_violations") or ()),
            retry_count=int(data.get("retry_count", 0)),
            result_image=ImageRef.from_dict(data.get("result_image")),
            job_handle=data.get("job_handle"),
            error=data.get("error"),
        )


@dataclass(frozen=True)
class RunSnapshot:
    """Read-only projection of a staging run."""
    id: str
    status: RunStatus
    room_category: RoomCategory
    style_profile: StyleProfile
    current_stage_index: int
    current_stage_kind: StageKind | None
    stage_count: int
    stage_results: list[StageResult] = field(default_factory=list)
    final_image: ImageRef | None = None
    error_message: str | None = None

"""Staging plan generation.

A plan is built once per run and stored with it. The only randomness is the
choice of example items quoted in each instruction; callers pass a seeded
``random.Random`` to make that reproducible.
"""
from __future__ import annotations
import random
from typing import Iterable, Sequence
from virtual_staging.core.errors import InputError, PlanInvariantError
from virtual_staging.core.workflow import (
    STAGE_ORDER,
    RoomCategory,
    StageConfig,
    StageKind,
    StageSelection,
    StagingPlan,
    StyleProfile,
    ViolationTag,
)
from virtual_staging.planning.catalogue import (
    EXAMPLE_COUNTS,
    PRESERVATION_RULE,
    ROOM_CATALOGUE,
    STAGE_REINFORCEMENT,
    STAGE_SCOPE_RULES,
    STYLE_CATALOGUE,
    RoomCatalogue,
    StyleDetail,
)

CORRECTIONS_HEADER = "CORRECTIONS NEEDED:"

_CORRECTIONS: dict[ViolationTag, str] = {
    ViolationTag.WALL_DECOR_PRESENT: "Remove any wall decor (frames, mirrors, prints).",
    ViolationTag.WINDOW_TREATMENT_PRESENT: "Remove any window treatments (curtains, blinds).",
    ViolationTag.CIRCULATION_BLOCKED: "Maintain 90cm clearance around all furniture.",
    ViolationTag.COLOR_DRIFT_DETECTED: (
        "Keep wall, floor and ceiling colors and the lighting identical to the input photo."
    ),
}


def parse_room(value: RoomCategory | str) -> RoomCategory:
    try:
        return RoomCategory(value)
    except ValueError:
        raise InputError(f"Unknown room category: {value!r}") from None


def parse_style(value: StyleProfile | str) -> StyleProfile:
    try:
        return StyleProfile(value)
    except ValueError:
        raise InputError(f"Unknown style profile: {value!r}") from None


def sample_examples(items: Sequence[str], count: int, rng: random.Random) -> list[str]:
    """Fisher-Yates shuffle of a copy of ``items``, truncated to ``count``."""
    pool = list(items)
    for i in range(len(pool) - 1, 0, -1):
        j = rng.randint(0, i)
        pool[i], pool[j] = pool[j], pool[i]
    return pool[:max(count, 0)]


def _allowed_for_style(items: Iterable[str], style: StyleDetail) -> list[str]:
    blocked = [t.lower() for t in style.blocked_terms]
    return [i for i in items if not any(t in i.lower() for t in blocked)]


def style_guidance(style: StyleDetail) -> str:
    lines = [f"Style guidance ({style.label}):"]
    lines.append(f"- Palette: {', '.join(style.palette)}.")
    if style.palette_accents:
        lines.append(f"- Accents (small doses): {', '.join(style.palette_accents)}.")
    lines.append(f"- Materials: {', '.join(style.materials)}.")
    lines.append(f"- Silhouettes: {', '.join(style.silhouettes)}.")
    if style.hardware:
        lines.append(f"- Hardware: {', '.join(style.hardware)}.")
    if style.details:
        lines.append(f"- Details: {', '.join(style.details)}.")
    if style.patterns:
        lines.append(f"- Textiles and patterns: {', '.join(style.patterns)}.")
    if style.blocked_colors:
        lines.append(f"- Never use these colors: {', '.join(style.blocked_colors)}.")
    lines.append("- Keep every new item consistent with the items already in the photo.")
    return "\n".join(lines)


def _stage_task(kind: StageKind, room: RoomCatalogue, min_items: int, max_items: int, examples: list[str]) -> str:
    if max_items == 0:
        return (
            f"Nothing from this stage fits this {room.label}. Do not add any items; "
            "return the photo exactly as it is."
        )
    count = f"{min_items} to {max_items}" if min_items != max_items else f"exactly {min_items}"
    example_text = "; ".join(examples)
    if kind is StageKind.PRIMARY_FURNITURE:
        return (
            f"Furnish this {room.label} with {count} main furniture pieces, for example: {example_text}. "
            "Place them on the floor in realistic scale and perspective. "
            "Maintain at least 90 cm (36\") of clear circulation and keep doors, stairs and windows unobstructed. "
            "Do not add wall decor or window treatments in this stage."
        )
    if kind is StageKind.COMPLEMENTARY:
        return (
            f"Complement the existing furniture with {count} accessories, for example: {example_text}. "
            "Only place items where space is clearly free and keep the existing circulation paths open. "
            "Do not add wall decor or window treatments in this stage."
        )
    if kind is StageKind.WINDOW_TREATMENT:
        return (
            f"Dress the windows with {count} window treatments, for example: {example_text}. "
            "Install window treatments only where windows actually exist; if the photo shows no window, add nothing. "
            "Do not add wall decor in this stage."
        )
    return (
        f"Decorate free wall surface with {count} pieces, for example: {example_text}. "
        "Surface-mounted items only. If no free wall space exists, SKIP this stage and add nothing. "
        "Do not add curtains, blinds or shades in this stage."
    )


def build_instruction(
    kind: StageKind,
    room: RoomCatalogue,
    style: StyleDetail,
    min_items: int,
    max_items: int,
    examples: list[str],
) -> str:
    return "\n\n".join([
        STAGE_SCOPE_RULES[kind],
        PRESERVATION_RULE,
        _stage_task(kind, room, min_items, max_items, examples),
        style_guidance(style),
    ])


def build_plan(
    room_category: RoomCategory | str,
    style_profile: StyleProfile | str,
    stage_selection: StageSelection | None = None,
    *,
    rng: random.Random | None = None,
) -> StagingPlan:
    """Build the ordered stage list for a room and style.

    Every stage kind is generated first; ``stage_selection`` only filters the
    result afterwards, so kept stages never change relative order. A stage
    with nothing left to offer is still emitted with ``max_items == 0``.
    """
    room_key = parse_room(room_category)
    style_key = parse_style(style_profile)
    rng = rng or random.Random()
    room = ROOM_CATALOGUE[room_key]
    style = STYLE_CATALOGUE[style_key]

    claimed: set[str] = set()
    stages: list[StageConfig] = []
    for kind in STAGE_ORDER:
        entry = room.stages[kind]
        # A category belongs to the first stage that offers it.
        allowed = [i for i in _allowed_for_style(entry.items, style) if i not in claimed]
        claimed.update(allowed)
        if allowed:
            min_items, max_items = entry.item_range
            if max_items == 0:
                allowed = []
        else:
            min_items, max_items = 0, 0
        examples = sample_examples(allowed, EXAMPLE_COUNTS[kind], rng)
        stages.append(StageConfig(
            kind=kind,
            min_items=min_items,
            max_items=max_items,
            allowed_categories=tuple(allowed),
            instruction=build_instruction(kind, room, style, min_items, max_items, examples),
        ))

    if stage_selection is not None:
        stages = [s for s in stages if stage_selection.includes(s.kind)]
    if not stages:
        raise InputError("Stage selection leaves no stage to run")

    plan = StagingPlan(room_category=room_key, style_profile=style_key, stages=tuple(stages))
    validate_plan(plan)
    return plan


def validate_plan(plan: StagingPlan) -> None:
    """Raise PlanInvariantError when a plan breaks its structural rules."""
    order = [STAGE_ORDER.index(k) for k in plan.kinds]
    if order != sorted(set(order)):
        raise PlanInvariantError(f"Stages out of order or repeated: {[k.value for k in plan.kinds]}")
    seen: set[str] = set()
    for stage in plan.stages:
        if stage.min_items < 0 or stage.min_items > stage.max_items:
            raise PlanInvariantError(f"{stage.kind.value}: invalid item range {stage.min_items}-{stage.max_items}")
        if not stage.allowed_categories and stage.max_items != 0:
            raise PlanInvariantError(f"{stage.kind.value}: no allowed categories but max_items={stage.max_items}")
        overlap = seen.intersection(stage.allowed_categories)
        if overlap:
            raise PlanInvariantError(f"{stage.kind.value}: categories already claimed: {sorted(overlap)}")
        seen.update(stage.allowed_categories)


def build_corrective_instruction(
    stage: StageConfig,
    violations: Iterable[ViolationTag] = (),
) -> str:
    """Append targeted corrections for a failed attempt to the stage instruction.

    With no violation tags (transport failure or timeout) the stage's
    reinforcement sentence is used instead.
    """
    corrections: list[str] = []
    for tag in dict.fromkeys(ViolationTag(v) for v in violations):
        if tag is ViolationTag.ITEM_COUNT_OUT_OF_RANGE:
            corrections.append(
                f"Add between {stage.min_items} and {stage.max_items} new items in total, no more and no fewer."
            )
        else:
            corrections.append(_CORRECTIONS[tag])
    if not corrections:
        corrections.append(STAGE_REINFORCEMENT[stage.kind])
    body = "\n".join(f"- {c}" for c in corrections)
    return f"{stage.instruction}\n\n{CORRECTIONS_HEADER}\n{body}"

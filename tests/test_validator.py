"""Validator heuristics on synthetic before/after images."""
import io
import numpy as np
import pytest
from PIL import Image, ImageDraw
from virtual_staging.core.errors import ImageDecodeError
from virtual_staging.core.workflow import ImageRef, StageConfig, StageKind, ViolationTag
from virtual_staging.validation.heuristics import ImageComparison, count_blobs
from virtual_staging.validation.validator import StageValidator

W, H = 1024, 768
WALL_GRAY = (180, 180, 180)


def png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def empty_room() -> Image.Image:
    return Image.new("RGB", (W, H), WALL_GRAY)


def with_checkerboard(box, block=16) -> Image.Image:
    img = empty_room()
    draw = ImageDraw.Draw(img)
    x0, y0, x1, y1 = box
    for y in range(y0, y1, block):
        for x in range(x0, x1, block):
            dark = ((x - x0) // block + (y - y0) // block) % 2 == 0
            draw.rectangle([x, y, x + block - 1, y + block - 1], fill=(0, 0, 0) if dark else (255, 255, 255))
    return img


def with_vertical_stripes(x0, x1, width=16) -> Image.Image:
    img = empty_room()
    draw = ImageDraw.Draw(img)
    for i, x in enumerate(range(x0, x1, width)):
        draw.rectangle([x, 0, x + width - 1, H - 1], fill=(0, 0, 0) if i % 2 == 0 else (255, 255, 255))
    return img


def with_blocks(*boxes, color=(100, 70, 50)) -> Image.Image:
    img = empty_room()
    draw = ImageDraw.Draw(img)
    for box in boxes:
        draw.rectangle(box, fill=color)
    return img


def stage(kind=StageKind.PRIMARY_FURNITURE, lo=2, hi=4):
    return StageConfig(kind=kind, min_items=lo, max_items=hi, allowed_categories=("sofa",), instruction="x")


@pytest.fixture
def validator():
    return StageValidator(load_image=lambda ref: b"")


BEFORE = png(empty_room())
TWO_PIECES = png(with_blocks((50, 450, 250, 650), (750, 450, 950, 650)))


def test_two_floor_pieces_pass_primary_stage(validator):
    verdict = validator.validate_bytes(BEFORE, TWO_PIECES, stage())

    assert verdict.item_count_estimate == 2
    assert verdict.passed
    assert verdict.tags == []


def test_unchanged_image_counts_zero_items(validator):
    verdict = validator.validate_bytes(BEFORE, BEFORE, stage(StageKind.WALL_DECOR, lo=0, hi=2))

    assert verdict.item_count_estimate == 0
    assert verdict.passed


def test_too_few_items_is_flagged(validator):
    verdict = validator.validate_bytes(BEFORE, BEFORE, stage(lo=2, hi=4))

    assert verdict.tags == [ViolationTag.ITEM_COUNT_OUT_OF_RANGE]
    assert verdict.detected_violations[0].measured == 0


def test_framed_art_on_wall_is_wall_decor(validator):
    after = png(with_checkerboard((352, 128, 672, 320)))

    verdict = validator.validate_bytes(BEFORE, after, stage())

    assert ViolationTag.WALL_DECOR_PRESENT in verdict.tags
    assert ViolationTag.WINDOW_TREATMENT_PRESENT not in verdict.tags
    assert ViolationTag.COLOR_DRIFT_DETECTED not in verdict.tags


def test_wall_decor_allowed_in_wall_stage(validator):
    after = png(with_checkerboard((352, 128, 672, 320)))

    verdict = validator.validate_bytes(BEFORE, after, stage(StageKind.WALL_DECOR, lo=0, hi=2))

    assert verdict.passed


def test_curtain_folds_are_window_treatment(validator):
    after = png(with_vertical_stripes(0, 204))

    verdict = validator.validate_bytes(BEFORE, after, stage(StageKind.WALL_DECOR, lo=0, hi=2))

    assert verdict.tags == [ViolationTag.WINDOW_TREATMENT_PRESENT]


def test_curtains_allowed_in_window_stage(validator):
    after = png(with_vertical_stripes(0, 204))

    verdict = validator.validate_bytes(BEFORE, after, stage(StageKind.WINDOW_TREATMENT, lo=1, hi=2))

    assert verdict.passed


def test_blocked_walkway(validator):
    after = png(with_blocks((280, 600, 740, 767), color=(90, 60, 40)))

    verdict = validator.validate_bytes(BEFORE, after, stage(lo=1, hi=4))

    assert verdict.tags == [ViolationTag.CIRCULATION_BLOCKED]


def test_repainted_room_is_color_drift(validator):
    after = png(Image.new("RGB", (W, H), (120, 120, 120)))

    verdict = validator.validate_bytes(BEFORE, after, stage(StageKind.COMPLEMENTARY))

    assert ViolationTag.COLOR_DRIFT_DETECTED in verdict.tags
    drift = next(v for v in verdict.detected_violations if v.tag is ViolationTag.COLOR_DRIFT_DETECTED)
    assert drift.measured > 0.15


def test_images_of_different_sizes_are_compared(validator):
    small_before = png(Image.new("RGB", (512, 384), WALL_GRAY))

    verdict = validator.validate_bytes(small_before, TWO_PIECES, stage())

    assert verdict.item_count_estimate == 2


def test_validate_loads_images_through_store():
    blobs = {"before": BEFORE, "after": TWO_PIECES}
    validator = StageValidator(load_image=lambda ref: blobs[ref.url])

    verdict = validator.validate(ImageRef("before", W, H), ImageRef("after", W, H), stage())

    assert verdict.passed


def test_checks_are_replaceable():
    validator = StageValidator(load_image=lambda ref: b"")
    validator.checks["item_count"] = lambda cmp, stage: None

    verdict = validator.validate_bytes(BEFORE, BEFORE, stage(lo=2, hi=4))

    assert verdict.passed


def test_undecodable_image():
    with pytest.raises(ImageDecodeError):
        ImageComparison.from_bytes(b"not an image", BEFORE)


def test_count_blobs():
    grid = np.array([
        [1, 1, 0, 0, 1],
        [0, 1, 0, 0, 1],
        [0, 0, 0, 0, 0],
        [1, 0, 1, 1, 0],
    ], dtype=bool)
    assert count_blobs(grid) == 4
    assert count_blobs(np.zeros((3, 3), dtype=bool)) == 0

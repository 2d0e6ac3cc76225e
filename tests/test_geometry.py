"""Provider working-size normalization."""
import pytest
from virtual_staging.providers.geometry import normalize_dimensions, round_to_multiple


@pytest.mark.parametrize("size,expected", [
    ((1024, 768), (1024, 768)),
    ((4000, 3000), (1536, 1152)),
    ((300, 200), (768, 512)),
    ((3000, 4000), (1152, 1536)),
    ((1000, 1000), (992, 992)),
    ((6000, 1000), (1536, 256)),
])
def test_normalize_dimensions(size, expected):
    result = normalize_dimensions(*size)
    assert (result.width, result.height) == expected


def test_result_respects_granularity_and_bounds():
    for w, h in [(17, 9), (513, 511), (1537, 1535), (2560, 1440), (640, 480)]:
        size = normalize_dimensions(w, h)
        assert size.width % 32 == 0 and size.height % 32 == 0
        assert max(size.width, size.height) <= 1536
        assert min(size.width, size.height) >= 32


def test_aspect_ratio_is_preserved_approximately():
    size = normalize_dimensions(2560, 1440)
    assert abs(size.width / size.height - 2560 / 1440) < 0.03
    assert size.aspect_ratio == "16:9"


def test_aspect_ratio_is_reduced():
    assert normalize_dimensions(1024, 768).aspect_ratio == "4:3"


def test_custom_constraints():
    size = normalize_dimensions(100, 100, granularity=64, min_side=256, max_side=1024)
    assert (size.width, size.height) == (256, 256)


@pytest.mark.parametrize("w,h", [(0, 100), (100, -1)])
def test_invalid_dimensions(w, h):
    with pytest.raises(ValueError):
        normalize_dimensions(w, h)


def test_round_to_multiple():
    assert round_to_multiple(47, 32) == 32
    assert round_to_multiple(49, 32) == 64

"""Unit tests for screenshot tiling."""

import io

import pytest
from PIL import Image

from crawlshot.core.errors import CaptureError
from crawlshot.crawl.slicer import (
    MAX_STEM_LENGTH,
    compute_tiles,
    safe_filename,
    slice_screenshot,
    tile_filename,
)
from tests.fakes import make_png


class MemorySink:
    """Collects tiles in memory instead of writing files."""

    def __init__(self) -> None:
        self.tiles: dict[str, bytes] = {}

    def save_tile(self, filename: str, data: bytes) -> str:
        self.tiles[filename] = data
        return f"http://localhost:3006/screenshots/{filename}"


# =============================================================================
# Geometry
# =============================================================================


def test_compute_tiles_splits_tall_image() -> None:
    """Test a 10000px page splits into two full tiles and a remainder."""
    tiles = compute_tiles(10000, 1280, 4096, 0)

    assert [(t.top, t.height) for t in tiles] == [(0, 4096), (4096, 4096), (8192, 1808)]
    assert all(t.count == 3 for t in tiles)
    assert all(t.width == 1280 for t in tiles)
    assert tiles[-1].bottom == 10000


def test_compute_tiles_short_image_is_single_tile() -> None:
    """Test an image no taller than the tile height is left whole."""
    tiles = compute_tiles(4096, 800, 4096, 0)

    assert len(tiles) == 1
    assert (tiles[0].top, tiles[0].height, tiles[0].count) == (0, 4096, 1)


def test_compute_tiles_with_overlap() -> None:
    """Test consecutive tiles share exactly the overlap."""
    tiles = compute_tiles(5000, 100, 2000, 200)

    assert [(t.top, t.height) for t in tiles] == [(0, 2000), (1800, 2000), (3600, 1400)]
    for upper, lower in zip(tiles, tiles[1:]):
        assert upper.bottom - lower.top == 200


def test_compute_tiles_stay_in_bounds() -> None:
    """Test tiles stay within the image and leave no gaps for awkward sizes."""
    for height in (1, 999, 1000, 1001, 2999, 3001, 7777):
        tiles = compute_tiles(height, 50, 1000, 150)
        assert tiles[0].top == 0
        assert tiles[-1].bottom == height
        for tile in tiles:
            assert 0 <= tile.top < height
            assert 0 < tile.height <= 1000
            assert tile.bottom <= height
        for upper, lower in zip(tiles, tiles[1:]):
            assert upper.top < lower.top <= upper.bottom


@pytest.mark.parametrize(
    ("height", "width", "max_height", "overlap"),
    [
        (0, 100, 1000, 0),
        (100, 0, 1000, 0),
        (100, 100, 0, 0),
        (100, 100, 1000, 1000),
        (100, 100, 1000, -1),
    ],
)
def test_compute_tiles_rejects_invalid_geometry(
    height: int, width: int, max_height: int, overlap: int
) -> None:
    """Test invalid dimensions and overlaps raise ValueError."""
    with pytest.raises(ValueError):
        compute_tiles(height, width, max_height, overlap)


# =============================================================================
# Filenames
# =============================================================================


def test_safe_filename_replaces_unsafe_characters() -> None:
    """Test non-alphanumeric characters become underscores."""
    assert safe_filename("https://example.com/a?b=1") == "https___example_com_a_b_1"


def test_safe_filename_truncates_long_urls_with_hash() -> None:
    """Test long stems are truncated and kept unique by a hash suffix."""
    first = safe_filename("https://example.com/" + "a" * 300)
    second = safe_filename("https://example.com/" + "a" * 301)

    assert len(first) == MAX_STEM_LENGTH + 9
    assert first != second


def test_tile_filename() -> None:
    """Test single tiles keep the plain stem and slices are numbered from 1."""
    single = compute_tiles(100, 100, 1000)[0]
    sliced = compute_tiles(2500, 100, 1000)

    assert tile_filename("home", single) == "home.png"
    assert [tile_filename("home", t) for t in sliced] == [
        "home_slice_1_of_3.png",
        "home_slice_2_of_3.png",
        "home_slice_3_of_3.png",
    ]


# =============================================================================
# Slicing
# =============================================================================


def test_slice_screenshot_writes_ordered_tiles() -> None:
    """Test a tall screenshot is cropped into ordered PNG tiles."""
    sink = MemorySink()

    urls = slice_screenshot(
        make_png(200, 2500), "https://example.com/docs", sink, max_height=1000
    )

    stem = "https___example_com_docs"
    assert urls == [
        f"http://localhost:3006/screenshots/{stem}_slice_{i}_of_3.png" for i in (1, 2, 3)
    ]
    heights = []
    for i in (1, 2, 3):
        with Image.open(io.BytesIO(sink.tiles[f"{stem}_slice_{i}_of_3.png"])) as tile:
            assert tile.width == 200
            heights.append(tile.height)
    assert heights == [1000, 1000, 500]


def test_slice_screenshot_single_tile() -> None:
    """Test a short screenshot is stored once under the plain stem."""
    sink = MemorySink()

    urls = slice_screenshot(make_png(200, 300), "https://example.com/", sink, max_height=1000)

    assert urls == ["http://localhost:3006/screenshots/https___example_com_.png"]
    assert list(sink.tiles) == ["https___example_com_.png"]


def test_slice_screenshot_rejects_corrupt_buffer() -> None:
    """Test undecodable screenshot bytes raise CaptureError."""
    with pytest.raises(CaptureError, match="slicing failed"):
        slice_screenshot(b"not a png", "https://example.com/", MemorySink())

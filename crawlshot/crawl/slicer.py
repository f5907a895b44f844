"""Screenshot tiling.

Full-page screenshots of long pages are split into tiles no taller than
``max_height`` so that downstream renderers can handle them. ``compute_tiles``
is the pure geometry; ``slice_screenshot`` crops a PNG buffer with Pillow and
hands every tile to a ``TileSink``.

Example:
    >>> [(t.top, t.height) for t in compute_tiles(10000, 1280, 4096, 0)]
    [(0, 4096), (4096, 4096), (8192, 1808)]
"""

from __future__ import annotations

import hashlib
import io
import logging
import math
import re
from dataclasses import dataclass
from typing import Protocol

from PIL import Image

from crawlshot.core.errors import CaptureError, SliceBoundsError

logger = logging.getLogger(__name__)

DEFAULT_MAX_TILE_HEIGHT = 4096
DEFAULT_OVERLAP = 0

MAX_STEM_LENGTH = 150


@dataclass(frozen=True)
class Tile:
    """Geometry of one tile.

    Args:
        index: Zero-based tile position
        count: Number of tiles the image was split into
        top: Offset of the tile's top edge in pixels
        height: Tile height in pixels
        width: Tile width in pixels (always the full image width)
    """

    index: int
    count: int
    top: int
    height: int
    width: int

    @property
    def bottom(self) -> int:
        return self.top + self.height


class TileSink(Protocol):
    """Destination for encoded tiles."""

    def save_tile(self, filename: str, data: bytes) -> str:
        """Persist a PNG tile and return its public URL."""
        ...


def _check_bounds(top: int, height: int, image_height: int) -> None:
    if top >= image_height:
        raise SliceBoundsError(f"tile top {top} >= image height {image_height}")
    if top + height > image_height:
        raise SliceBoundsError(
            f"tile {top} + {height} = {top + height} > image height {image_height}"
        )


def compute_tiles(
    height: int,
    width: int,
    max_height: int = DEFAULT_MAX_TILE_HEIGHT,
    overlap: int = DEFAULT_OVERLAP,
) -> list[Tile]:
    """Split an image of ``height`` x ``width`` into ordered tiles.

    Every tile is ``max_height`` tall except possibly the last one, which is
    clamped to the image. When the clamped last tile would be shorter than
    ``overlap``, it is shifted up to end at the bottom edge instead. Tiles
    that would fall outside the image are skipped and logged.

    Args:
        height: Image height in pixels
        width: Image width in pixels
        max_height: Maximum tile height in pixels
        overlap: Pixels shared by consecutive tiles

    Returns:
        Tiles ordered top to bottom

    Raises:
        ValueError: If dimensions are not positive or the overlap is not in
            ``[0, max_height)``
    """
    if height <= 0 or width <= 0:
        raise ValueError(f"Invalid image dimensions: {width}x{height}")
    if max_height <= 0:
        raise ValueError(f"max_height must be positive, got {max_height}")
    if overlap < 0 or overlap >= max_height:
        raise ValueError(f"overlap must be in [0, {max_height}), got {overlap}")

    if height <= max_height or height <= overlap:
        return [Tile(index=0, count=1, top=0, height=height, width=width)]

    step = max_height - overlap
    count = max(1, math.ceil((height - max_height) / step) + 1)
    tiles: list[Tile] = []

    for index in range(count):
        top = index * step
        tile_height = max_height
        if index == count - 1:
            tile_height = height - top
            if tile_height < overlap:
                top = height - max_height
                tile_height = max_height

        try:
            _check_bounds(top, tile_height, height)
        except SliceBoundsError as exc:
            logger.error("Skipping tile %d/%d: %s", index + 1, count, exc)
            continue

        tiles.append(
            Tile(index=index, count=count, top=top, height=tile_height, width=width)
        )

    return tiles


def safe_filename(url: str) -> str:
    """Turn a URL into a filesystem-safe stem.

    Non-alphanumeric characters become underscores. Very long stems are
    truncated and suffixed with a short hash to stay unique.

    Examples:
        >>> safe_filename("https://example.com/a?b=1")
        'https___example_com_a_b_1'
    """
    stem = re.sub(r"[^a-zA-Z0-9]", "_", url)
    if len(stem) > MAX_STEM_LENGTH:
        url_hash = hashlib.md5(url.encode()).hexdigest()[:8]  # noqa: S324
        stem = f"{stem[:MAX_STEM_LENGTH]}_{url_hash}"
    return stem


def tile_filename(stem: str, tile: Tile) -> str:
    if tile.count == 1:
        return f"{stem}.png"
    return f"{stem}_slice_{tile.index + 1}_of_{tile.count}.png"


def slice_screenshot(
    buffer: bytes,
    url: str,
    sink: TileSink,
    max_height: int = DEFAULT_MAX_TILE_HEIGHT,
    overlap: int = DEFAULT_OVERLAP,
) -> list[str]:
    """Tile a full-page screenshot and persist every tile.

    Args:
        buffer: PNG bytes of the full-page screenshot
        url: Canonical URL of the captured page
        sink: Destination for the encoded tiles
        max_height: Maximum tile height in pixels
        overlap: Pixels shared by consecutive tiles

    Returns:
        Public URLs of the stored tiles, top to bottom

    Raises:
        CaptureError: If the buffer cannot be decoded or a tile cannot be
            written
    """
    try:
        with Image.open(io.BytesIO(buffer)) as image:
            image.load()
            width, height = image.size
            logger.debug("Screenshot of %s is %dx%d", url, width, height)
            tiles = compute_tiles(height, width, max_height, overlap)
            if len(tiles) > 1:
                logger.info(
                    "Slicing %dx%d screenshot into %d tiles for %s",
                    width,
                    height,
                    tiles[0].count,
                    url,
                )

            stem = safe_filename(url)
            urls: list[str] = []
            for tile in tiles:
                if tile.count == 1:
                    region = image
                else:
                    region = image.crop((0, tile.top, width, tile.bottom))
                encoded = io.BytesIO()
                region.save(encoded, format="PNG")
                urls.append(sink.save_tile(tile_filename(stem, tile), encoded.getvalue()))
            return urls
    except (OSError, ValueError) as exc:
        raise CaptureError(url, f"slicing failed: {exc}") from exc

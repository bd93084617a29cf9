"""Flight Instrument Panel page images.

The FIP shows 320x240 pages of 24-bit RGB pixels, row-major, three bytes
per pixel. The manager's FIP write path is a raw byte pipe; these helpers
turn arbitrary images into that layout.
"""

from enum import Enum
from typing import TYPE_CHECKING

from PIL import Image, ImageOps

from saitek_panels.constants import FIP_HEIGHT, FIP_PAGE_BYTES, FIP_WIDTH
from saitek_panels.exceptions import ImageError

if TYPE_CHECKING:
    from pathlib import Path

FIP_SIZE = (FIP_WIDTH, FIP_HEIGHT)


class ResizeMode(Enum):
    """How an image is fitted onto the 320x240 page."""

    STRETCH = "stretch"  # Scale to exactly 320x240, ignoring aspect ratio
    FIT = "fit"  # Scale to fit inside, letterboxed
    CROP = "crop"  # Scale to cover, center-cropped
    CENTER = "center"  # No scaling, centered (cropped if larger)


def image_to_page(
    image: Image.Image,
    mode: ResizeMode = ResizeMode.FIT,
    background: tuple[int, int, int] = (0, 0, 0),
) -> bytes:
    """Convert an image to a raw FIP page.

    Args:
        image: Any PIL image.
        mode: How to fit the image onto the page.
        background: Fill color for uncovered areas.

    Returns:
        230400 bytes of RGB pixel data.
    """
    rgb = image.convert("RGB")

    if mode == ResizeMode.STRETCH:
        page = rgb.resize(FIP_SIZE)
    elif mode == ResizeMode.CROP:
        page = ImageOps.fit(rgb, FIP_SIZE)
    elif mode == ResizeMode.FIT:
        page = ImageOps.pad(rgb, FIP_SIZE, color=background)
    else:
        page = Image.new("RGB", FIP_SIZE, color=background)
        offset = ((FIP_WIDTH - rgb.width) // 2, (FIP_HEIGHT - rgb.height) // 2)
        page.paste(rgb, offset)

    data = page.tobytes()
    if len(data) != FIP_PAGE_BYTES:
        msg = f"Page conversion produced {len(data)} bytes, expected {FIP_PAGE_BYTES}"
        raise ImageError(msg)
    return data


def load_page(image_path: "Path", mode: ResizeMode = ResizeMode.FIT) -> bytes:
    """Load an image file and convert it to a raw FIP page.

    Only the first frame of animated images is used.

    Raises:
        ImageError: If the image cannot be opened or processed.
    """
    try:
        with Image.open(image_path) as im:
            return image_to_page(im, mode)
    except FileNotFoundError as e:
        msg = f"Image file not found: {image_path}"
        raise ImageError(msg) from e
    except Image.DecompressionBombError as e:
        msg = f"Image too large (potential decompression bomb): {image_path}"
        raise ImageError(msg) from e
    except OSError as e:
        msg = f"Failed to open image: {image_path}"
        raise ImageError(msg) from e


def page_to_image(data: bytes) -> Image.Image:
    """Rebuild a PIL image from a raw FIP page (for previews and tests).

    Raises:
        ValueError: If data is not exactly one page.
    """
    if len(data) != FIP_PAGE_BYTES:
        msg = f"FIP page must be exactly {FIP_PAGE_BYTES} bytes, got {len(data)}"
        raise ValueError(msg)
    return Image.frombytes("RGB", FIP_SIZE, data)

"""Tests for FIP page conversion."""

from pathlib import Path

import pytest
from PIL import Image

from saitek_panels.exceptions import ImageError
from saitek_panels.fip import ResizeMode, image_to_page, load_page, page_to_image

PAGE_BYTES = 320 * 240 * 3


class TestImageToPage:
    """Tests for image_to_page."""

    @pytest.mark.parametrize("mode", list(ResizeMode))
    def test_page_size(self, mode: ResizeMode) -> None:
        """Every mode should produce exactly one page."""
        image = Image.new("RGB", (100, 50), color=(255, 0, 0))
        assert len(image_to_page(image, mode)) == PAGE_BYTES

    def test_row_major_rgb(self) -> None:
        """Pixels should be laid out row by row, three bytes each."""
        image = Image.new("RGB", (320, 240), color=(0, 0, 0))
        image.putpixel((1, 0), (10, 20, 30))
        image.putpixel((0, 1), (40, 50, 60))

        page = image_to_page(image, ResizeMode.STRETCH)

        assert page[3:6] == bytes([10, 20, 30])
        assert page[320 * 3 : 320 * 3 + 3] == bytes([40, 50, 60])

    def test_converts_other_modes(self) -> None:
        """Grayscale and RGBA input should be converted to RGB."""
        for mode in ("L", "RGBA", "1"):
            image = Image.new(mode, (320, 240))
            assert len(image_to_page(image)) == PAGE_BYTES

    def test_fit_letterboxes(self) -> None:
        """A wide image should be padded top and bottom with the background."""
        image = Image.new("RGB", (640, 240), color=(255, 255, 255))

        page = page_to_image(image_to_page(image, ResizeMode.FIT, (0, 0, 255)))

        assert page.getpixel((160, 0)) == (0, 0, 255)
        assert page.getpixel((160, 120)) == (255, 255, 255)

    def test_center_does_not_scale(self) -> None:
        image = Image.new("RGB", (10, 10), color=(0, 255, 0))

        page = page_to_image(image_to_page(image, ResizeMode.CENTER))

        assert page.getpixel((160, 120)) == (0, 255, 0)
        assert page.getpixel((0, 0)) == (0, 0, 0)


class TestLoadPage:
    """Tests for load_page."""

    def test_loads_png(self, tmp_path: Path) -> None:
        path = tmp_path / "page.png"
        Image.new("RGB", (320, 240), color=(1, 2, 3)).save(path)

        page = load_page(path)

        assert len(page) == PAGE_BYTES
        assert page[:3] == bytes([1, 2, 3])

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ImageError, match="not found"):
            load_page(tmp_path / "missing.png")

    def test_not_an_image(self, tmp_path: Path) -> None:
        path = tmp_path / "page.png"
        path.write_bytes(b"not an image")

        with pytest.raises(ImageError, match="Failed to open"):
            load_page(path)


class TestPageToImage:
    """Tests for page_to_image."""

    def test_wrong_size(self) -> None:
        with pytest.raises(ValueError, match="230400"):
            page_to_image(b"\x00" * 100)

    def test_dimensions(self) -> None:
        image = page_to_image(bytes(PAGE_BYTES))
        assert image.size == (320, 240)
        assert image.mode == "RGB"

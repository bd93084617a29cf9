"""Tests for frame builders."""

import pytest

from saitek_panels.exceptions import EncodeBadDotError, EncodeOverflowError
from saitek_panels.frames import (
    blank_multi_frame,
    build_multi_frame,
    build_radio_frame,
    format_frequency,
    format_multi_value,
    multi_frame_leds,
    set_leds,
    with_leds,
)
from saitek_panels.glyphs import encode_field
from saitek_panels.models import MultiLED


class TestBuildRadioFrame:
    """Tests for build_radio_frame."""

    def test_four_frequencies(self) -> None:
        """Fields should appear in COM1A, COM1S, COM2A, COM2S order."""
        frame = build_radio_frame("118.00", "118.50", "121.30", "121.90")

        assert frame == (
            bytes([0x01, 0x01, 0xD8, 0x00, 0x00])
            + bytes([0x01, 0x01, 0xD8, 0x05, 0x00])
            + bytes([0x01, 0x02, 0xD1, 0x03, 0x00])
            + bytes([0x01, 0x02, 0xD1, 0x09, 0x00])
            + b"\x00\x00"
        )

    def test_length_and_trailer(self) -> None:
        """Radio frames are 22 bytes ending in two zero bytes."""
        for fields in (("", "", "", ""), ("1", "22", "333", "4444")):
            frame = build_radio_frame(*fields)
            assert len(frame) == 22
            assert frame[20] == 0
            assert frame[21] == 0

    def test_fields_are_left_aligned(self) -> None:
        """Radio fields are not padded on the left."""
        frame = build_radio_frame("12", "", "", "")
        assert frame[:5] == bytes([0x01, 0x02, 0x0F, 0x0F, 0x0F])

    def test_overflow_propagates(self) -> None:
        with pytest.raises(EncodeOverflowError):
            build_radio_frame("118.000", "", "", "")

    def test_strict_propagates(self) -> None:
        with pytest.raises(EncodeBadDotError):
            build_radio_frame(".1", "", "", "", strict=True)


class TestBuildMultiFrame:
    """Tests for build_multi_frame."""

    def test_rows_and_leds(self) -> None:
        """Rows, LED byte and trailer should land at their offsets."""
        frame = build_multi_frame("  250", " 3000", 0x11)

        assert frame[0:5] == encode_field("  250")
        assert frame[5:10] == encode_field(" 3000")
        assert frame[10] == 0x11
        assert frame[11] == 0xFF

    def test_length_and_trailer(self) -> None:
        for leds in (0, 0x5A, 0xFF):
            frame = build_multi_frame("1", "2", leds)
            assert len(frame) == 12
            assert frame[11] == 0xFF

    def test_rows_are_right_aligned(self) -> None:
        """Short readouts should end in the last cell."""
        assert build_multi_frame("250", "3000") == build_multi_frame("  250", " 3000")

    def test_accepts_led_flags(self) -> None:
        frame = build_multi_frame("", "", MultiLED.AP | MultiLED.ALT)
        assert frame[10] == 0x11

    @pytest.mark.parametrize("leds", [-1, 0x100])
    def test_led_out_of_range(self, leds: int) -> None:
        with pytest.raises(ValueError, match="one byte"):
            build_multi_frame("", "", leds)

    def test_blank_frame(self) -> None:
        frame = blank_multi_frame()
        assert frame[:10] == bytes([0x0F] * 10)
        assert frame[10:] == b"\x00\xff"


class TestLedHelpers:
    """Tests for LED mask helpers."""

    def test_set_leds_on(self) -> None:
        assert set_leds(0x01, MultiLED.ALT, on=True) == 0x11

    def test_set_leds_off(self) -> None:
        assert set_leds(0x11, MultiLED.AP, on=False) == 0x10

    def test_with_leds_keeps_rows(self) -> None:
        frame = build_multi_frame("250", "3000", 0x01)
        updated = with_leds(frame, 0x80)

        assert updated[:10] == frame[:10]
        assert multi_frame_leds(updated) == 0x80
        assert updated[11] == 0xFF

    def test_with_leds_rejects_other_frames(self) -> None:
        with pytest.raises(ValueError, match="12 bytes"):
            with_leds(b"\x00" * 22, 0x01)


class TestFormatting:
    """Tests for display value formatting."""

    def test_frequency_from_float(self) -> None:
        assert format_frequency(118.3) == "118.30"

    def test_frequency_from_string(self) -> None:
        """Non-digit characters should be removed."""
        assert format_frequency("118.30 MHz") == "118.30"

    def test_multi_value_rounds(self) -> None:
        assert format_multi_value(2999.6) == "3000"

    def test_multi_value_keeps_sign(self) -> None:
        assert format_multi_value(-700) == "-700"
        assert format_multi_value("-1,500 fpm") == "-1500"

"""Output frame builders for the Radio and Multi panels.

Builders are pure: they turn logical display values into the exact byte
payload of one SET_REPORT control transfer.

Radio frame (22 bytes):
    0..4    COM1 active   (top left)
    5..9    COM1 standby  (top right)
    10..14  COM2 active   (bottom left)
    15..19  COM2 standby  (bottom right)
    20..21  0x00 0x00

Multi frame (12 bytes):
    0..4    top row       (right-aligned)
    5..9    bottom row    (right-aligned)
    10      LED bitfield  (see MultiLED)
    11      0xFF
"""

from saitek_panels.constants import (
    MULTI_FRAME_SIZE,
    MULTI_LED_OFFSET,
    MULTI_TRAILER,
    RADIO_TRAILER,
)
from saitek_panels.glyphs import encode_field, right_align

_BLANK_ROW = "     "


def build_radio_frame(
    com1a: str,
    com1s: str,
    com2a: str,
    com2s: str,
    *,
    strict: bool = False,
) -> bytes:
    """Build the 22-byte Radio Panel frame from four left-aligned fields.

    Raises:
        EncodeOverflowError: If a field needs more than five cells.
        EncodeBadDotError: In strict mode, for an undisplayable dot.
    """
    frame = b"".join(
        encode_field(text, strict=strict) for text in (com1a, com1s, com2a, com2s)
    )
    frame += RADIO_TRAILER
    return frame


def build_multi_frame(
    top: str,
    bottom: str,
    leds: int = 0,
    *,
    strict: bool = False,
) -> bytes:
    """Build the 12-byte Multi Panel frame.

    Both rows are right-aligned to five cells before encoding.

    Raises:
        ValueError: If leds does not fit in one byte.
        EncodeOverflowError: If a row needs more than five cells.
        EncodeBadDotError: In strict mode, for an undisplayable dot.
    """
    leds = int(leds)
    if not 0 <= leds <= 0xFF:
        msg = f"LED mask must fit in one byte, got {leds:#x}"
        raise ValueError(msg)

    frame = bytearray()
    frame += encode_field(right_align(top), strict=strict)
    frame += encode_field(right_align(bottom), strict=strict)
    frame.append(leds)
    frame.append(MULTI_TRAILER)
    return bytes(frame)


def blank_multi_frame(leds: int = 0) -> bytes:
    """Build a Multi frame with both rows blank."""
    return build_multi_frame(_BLANK_ROW, _BLANK_ROW, leds)


def set_leds(mask: int, bits: int, on: bool) -> int:
    """Set or clear bits in an LED mask and return the new mask."""
    if on:
        return (mask | bits) & 0xFF
    return mask & ~bits & 0xFF


def multi_frame_leds(frame: bytes) -> int:
    """Return the LED bitfield of a Multi frame."""
    return frame[MULTI_LED_OFFSET]


def with_leds(frame: bytes, leds: int) -> bytes:
    """Return a copy of a Multi frame with its LED byte replaced."""
    if len(frame) != MULTI_FRAME_SIZE:
        msg = f"Multi frame must be exactly {MULTI_FRAME_SIZE} bytes, got {len(frame)}"
        raise ValueError(msg)
    updated = bytearray(frame)
    updated[MULTI_LED_OFFSET] = leds & 0xFF
    return bytes(updated)


def format_frequency(value: str | float) -> str:
    """Format a radio frequency for display.

    Floats are rendered with two decimals (``118.3`` -> ``"118.30"``);
    strings keep only digits and the decimal point.
    """
    if isinstance(value, (int, float)):
        value = f"{value:.2f}"
    return "".join(char for char in value if char.isdigit() or char == ".")


def format_multi_value(value: str | float) -> str:
    """Format an autopilot readout (altitude, heading, speed) for display.

    Numbers are rendered without decimals; strings keep digits, '.' and '-'.
    """
    if isinstance(value, (int, float)):
        value = f"{value:.0f}"
    return "".join(char for char in value if char.isdigit() or char in ".-")

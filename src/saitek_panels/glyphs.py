"""Seven-segment glyph codec for the Radio and Multi panel displays.

Each display field is five cells wide and is sent as five bytes, one per
cell. The low nibble selects the glyph; a high nibble of ``0xD`` lights the
decimal point of that cell.

Encoding table:
    '0'..'9' -> 0x00..0x09
    ' '      -> 0x0F (blank)
    '-'      -> 0x0E

A decimal point attaches to the cell on its left and does not consume a
cell of its own, so ``"118.00"`` occupies five cells:
``01 01 D8 00 00``.
"""

import logging
from typing import Final

from saitek_panels.constants import BLANK, DOT_FLAG, FIELD_CELLS, MINUS
from saitek_panels.exceptions import EncodeBadDotError, EncodeOverflowError

logger = logging.getLogger(__name__)

DIGIT_CODES: Final[dict[str, int]] = {
    **{str(digit): digit for digit in range(10)},
    " ": BLANK,
    "-": MINUS,
}

_GLYPHS: Final[dict[int, str]] = {code: char for char, code in DIGIT_CODES.items()}


def encode_field(text: str, *, strict: bool = False) -> bytes:
    """Encode text into the five display bytes of one field.

    The field is left-aligned: glyphs fill cells from the left and unused
    cells are blank. Unknown characters render as blank cells.

    Args:
        text: Digits, spaces, '-' and at most one '.'.
        strict: Raise instead of dropping a dot that cannot be shown.

    Returns:
        Exactly five bytes.

    Raises:
        EncodeOverflowError: If more than five cells are needed.
        EncodeBadDotError: In strict mode, for a leading dot, a dot after a
            blank cell, or a second dot.
    """
    out = bytearray([BLANK] * FIELD_CELLS)
    pos = 0
    dot_placed = False

    for char in text:
        if char == ".":
            if pos > 0 and out[pos - 1] != BLANK and not dot_placed:
                out[pos - 1] = DOT_FLAG | (out[pos - 1] & 0x0F)
                dot_placed = True
                continue
            msg = f"Decimal point at cell {pos} cannot be displayed in {text!r}"
            if strict:
                raise EncodeBadDotError(msg)
            logger.debug("%s; dropped", msg)
            continue

        if pos >= FIELD_CELLS:
            msg = f"Field {text!r} needs more than {FIELD_CELLS} display cells"
            raise EncodeOverflowError(msg)

        out[pos] = DIGIT_CODES.get(char, BLANK)
        pos += 1

    return bytes(out)


def decode_field(data: bytes) -> str:
    """Decode five display bytes back into text.

    Inverse of :func:`encode_field` for canonical input: the result is
    left-aligned and blank-padded to five cells (plus any decimal point).

    Raises:
        ValueError: If data is not exactly five bytes.
    """
    if len(data) != FIELD_CELLS:
        msg = f"Display field must be exactly {FIELD_CELLS} bytes, got {len(data)}"
        raise ValueError(msg)

    chars: list[str] = []
    for byte in data:
        if byte & 0xF0 == DOT_FLAG:
            chars.append(_GLYPHS.get(byte & 0x0F, " ") + ".")
        else:
            chars.append(_GLYPHS.get(byte & 0x0F, " "))
    return "".join(chars)


def display_width(text: str) -> int:
    """Return the number of cells text occupies (dots take no cell)."""
    return sum(1 for char in text if char != ".")


def right_align(text: str, width: int = FIELD_CELLS) -> str:
    """Left-pad text with blanks so it ends in the last cell.

    Text that is already wider than width is returned unchanged; the
    encoder reports the overflow.
    """
    padding = width - display_width(text)
    if padding <= 0:
        return text
    return " " * padding + text

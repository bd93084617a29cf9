"""Input report decoding for all supported panels.

Each panel sends a fixed-length HID input report on its interrupt IN
endpoint whenever a control changes. A :class:`ReportDecoder` keeps the
previous report and turns the difference into :class:`PanelEvent` values:

- Button and switch bits emit BUTTON_DOWN on 0 -> 1 and BUTTON_UP on 1 -> 0.
- Encoders occupy two adjacent bits (clockwise, counter-clockwise). A field
  changing to a non-zero direction emits one ENCODER_TICK with delta +1
  or -1; a field that stays set emits nothing.

Event codes are the bit position of the control in the report
(``byte_index * 8 + bit``). For encoders the code is the clockwise bit.

Radio report (3 bytes):
    byte 0  upper COM1, COM2, NAV1, NAV2, ADF, DME, XPDR, lower COM1
    byte 1  lower COM2, NAV1, NAV2, ADF, DME, XPDR, upper ACT/STBY,
            lower ACT/STBY
    byte 2  encoders: upper inner, upper outer, lower inner, lower outer

Multi report (3 bytes):
    byte 0  AP, HDG, NAV, IAS, ALT, VS, APR, REV (same order as the LEDs)
    byte 1  auto-throttle arm, flaps up, flaps down, trim down, trim up,
            rotary encoder (bits 5-6)
    byte 2  mode knob: ALT, VS, IAS, HDG, CRS (one-hot)

This Multi layout puts HDG at bit 1 of byte 0 so its code is 1. The panel
hardware itself reports the knob one-hot in byte 0 and the buttons in byte 1.

FIP report (2 bytes):
    byte 0  soft keys S1..S6, page up, page down
    byte 1  right scroll wheel (bits 0-1), left scroll wheel (bits 2-3)
"""

import logging
import time
from dataclasses import dataclass
from enum import IntEnum

from saitek_panels.constants import (
    FIP_REPORT_SIZE,
    MULTI_REPORT_SIZE,
    RADIO_REPORT_SIZE,
)
from saitek_panels.models import EventKind, PanelEvent, PanelKind

logger = logging.getLogger(__name__)


class RadioCode(IntEnum):
    """Radio Panel control codes."""

    UPPER_COM1 = 0
    UPPER_COM2 = 1
    UPPER_NAV1 = 2
    UPPER_NAV2 = 3
    UPPER_ADF = 4
    UPPER_DME = 5
    UPPER_XPDR = 6
    LOWER_COM1 = 7
    LOWER_COM2 = 8
    LOWER_NAV1 = 9
    LOWER_NAV2 = 10
    LOWER_ADF = 11
    LOWER_DME = 12
    LOWER_XPDR = 13
    UPPER_ACT_STBY = 14
    LOWER_ACT_STBY = 15
    ENC1_INNER = 16
    ENC1_OUTER = 18
    ENC2_INNER = 20
    ENC2_OUTER = 22


class MultiCode(IntEnum):
    """Multi Panel control codes."""

    AP = 0
    HDG = 1
    NAV = 2
    IAS = 3
    ALT = 4
    VS = 5
    APR = 6
    REV = 7
    AUTO_THROTTLE = 8
    FLAPS_UP = 9
    FLAPS_DOWN = 10
    TRIM_DOWN = 11
    TRIM_UP = 12
    ENCODER = 13
    KNOB_ALT = 16
    KNOB_VS = 17
    KNOB_IAS = 18
    KNOB_HDG = 19
    KNOB_CRS = 20


class FIPCode(IntEnum):
    """Flight Instrument Panel control codes."""

    S1 = 0
    S2 = 1
    S3 = 2
    S4 = 3
    S5 = 4
    S6 = 5
    PAGE_UP = 6
    PAGE_DOWN = 7
    RIGHT_WHEEL = 8
    LEFT_WHEEL = 10


@dataclass(frozen=True, slots=True)
class ReportLayout:
    """Where the buttons and encoders of one panel live in its report."""

    kind: PanelKind
    size: int
    codes: type[IntEnum]
    buttons: tuple[int, ...]
    encoders: tuple[int, ...]

    def code(self, bit: int) -> int:
        return self.codes(bit)


LAYOUTS: dict[PanelKind, ReportLayout] = {
    PanelKind.RADIO: ReportLayout(
        kind=PanelKind.RADIO,
        size=RADIO_REPORT_SIZE,
        codes=RadioCode,
        buttons=tuple(range(16)),
        encoders=(
            RadioCode.ENC1_INNER,
            RadioCode.ENC1_OUTER,
            RadioCode.ENC2_INNER,
            RadioCode.ENC2_OUTER,
        ),
    ),
    PanelKind.MULTI: ReportLayout(
        kind=PanelKind.MULTI,
        size=MULTI_REPORT_SIZE,
        codes=MultiCode,
        buttons=(*range(13), *range(16, 21)),
        encoders=(MultiCode.ENCODER,),
    ),
    PanelKind.FIP: ReportLayout(
        kind=PanelKind.FIP,
        size=FIP_REPORT_SIZE,
        codes=FIPCode,
        buttons=tuple(range(8)),
        encoders=(FIPCode.RIGHT_WHEEL, FIPCode.LEFT_WHEEL),
    ),
}


def _bit(report: bytes, position: int) -> int:
    return (report[position >> 3] >> (position & 7)) & 1


def encoder_delta(report: bytes, position: int) -> int:
    """Return the signed delta of the two-bit encoder field at position.

    +1 for clockwise, -1 for counter-clockwise, 0 when idle or when both
    bits are set.
    """
    return _bit(report, position) - _bit(report, position + 1)


class ReportDecoder:
    """Stateful decoder for one panel's input reports.

    Not thread-safe: each reader owns its decoder.
    """

    def __init__(self, layout: ReportLayout) -> None:
        self._layout = layout
        self._last = bytes(layout.size)

    @property
    def kind(self) -> PanelKind:
        return self._layout.kind

    @property
    def report_size(self) -> int:
        return self._layout.size

    @property
    def last_report(self) -> bytes:
        return self._last

    def reset(self) -> None:
        """Forget the previous report (after a reconnect)."""
        self._last = bytes(self._layout.size)

    def feed(self, report: bytes, timestamp: float | None = None) -> list[PanelEvent]:
        """Decode one report into the events it implies.

        Args:
            report: Raw report bytes. Extra trailing bytes are ignored.
            timestamp: Receipt time; defaults to ``time.time()``.

        Returns:
            Events in bit order: buttons first, then encoders.
        """
        size = self._layout.size
        if len(report) < size:
            logger.debug(
                "Ignoring short %s report (%d < %d bytes)",
                self._layout.kind.name,
                len(report),
                size,
            )
            return []

        current = bytes(report[:size])
        previous = self._last
        self._last = current
        if current == previous:
            return []

        stamp = time.time() if timestamp is None else timestamp
        events: list[PanelEvent] = []

        for position in self._layout.buttons:
            before = _bit(previous, position)
            after = _bit(current, position)
            if before == after:
                continue
            kind = EventKind.BUTTON_DOWN if after else EventKind.BUTTON_UP
            events.append(
                PanelEvent(
                    panel=self._layout.kind,
                    timestamp=stamp,
                    kind=kind,
                    code=self._layout.code(position),
                )
            )

        for position in self._layout.encoders:
            delta = encoder_delta(current, position)
            if delta == 0 or delta == encoder_delta(previous, position):
                continue
            events.append(
                PanelEvent(
                    panel=self._layout.kind,
                    timestamp=stamp,
                    kind=EventKind.ENCODER_TICK,
                    code=self._layout.code(position),
                    delta=delta,
                )
            )

        return events


def create_decoder(kind: PanelKind) -> ReportDecoder:
    """Create a fresh decoder for a panel kind."""
    return ReportDecoder(LAYOUTS[kind])

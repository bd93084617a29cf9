"""Data models for saitek-panels."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum, IntFlag

from saitek_panels.constants import FIP_PID, MULTI_PID, RADIO_PID, VENDOR_ID


class PanelKind(Enum):
    """Supported panel families, valued by USB product ID."""

    RADIO = RADIO_PID
    MULTI = MULTI_PID
    FIP = FIP_PID

    @property
    def product_id(self) -> int:
        return self.value

    @property
    def display_name(self) -> str:
        return _PANEL_NAMES[self]

    @classmethod
    def from_product_id(cls, product_id: int) -> "PanelKind | None":
        """Return the kind for a product ID, or None if unsupported."""
        try:
            return cls(product_id)
        except ValueError:
            return None


_PANEL_NAMES = {
    PanelKind.RADIO: "Saitek Pro Flight Radio Panel",
    PanelKind.MULTI: "Saitek Pro Flight Multi Panel",
    PanelKind.FIP: "Saitek Pro Flight Instrument Panel",
}


class PanelStatus(Enum):
    """Lifecycle state of a panel as tracked by the manager."""

    MISSING = "missing"
    CLOSED = "closed"
    OPEN = "open"
    DEGRADED = "degraded"
    PERMISSION_DENIED = "permission_denied"


class MultiLED(IntFlag):
    """Multi Panel button ring LEDs (byte 10 of the Multi frame)."""

    NONE = 0x00
    AP = 0x01
    HDG = 0x02
    NAV = 0x04
    IAS = 0x08
    ALT = 0x10
    VS = 0x20
    APR = 0x40
    REV = 0x80


class EventKind(Enum):
    """Kinds of events delivered to subscribers."""

    BUTTON_DOWN = "button_down"
    BUTTON_UP = "button_up"
    ENCODER_TICK = "encoder_tick"
    PANEL_LOST = "panel_lost"


@dataclass(frozen=True, slots=True)
class PanelInfo:
    """Identity of an enumerated panel. Immutable after enumeration."""

    kind: PanelKind
    path: bytes
    vendor_id: int = VENDOR_ID
    serial_number: str | None = None

    @property
    def product_id(self) -> int:
        return self.kind.product_id

    @property
    def name(self) -> str:
        return self.kind.display_name


@dataclass(frozen=True, slots=True)
class PanelEvent:
    """An input event decoded from a panel report.

    ``code`` is the bit position of the control within the input report
    (see the code tables in :mod:`saitek_panels.inputs`). ``delta`` is only
    set for encoder ticks.
    """

    panel: PanelKind
    timestamp: float
    kind: EventKind
    code: int
    delta: int | None = None


class PanelSet(Mapping[PanelKind, PanelInfo]):
    """Read-only mapping of the panels found during enumeration."""

    __slots__ = ("_panels",)

    def __init__(self, panels: Mapping[PanelKind, PanelInfo] | None = None) -> None:
        self._panels = dict(panels or {})

    def __getitem__(self, kind: PanelKind) -> PanelInfo:
        return self._panels[kind]

    def __iter__(self) -> Iterator[PanelKind]:
        return iter(self._panels)

    def __len__(self) -> int:
        return len(self._panels)

    def __repr__(self) -> str:
        kinds = ", ".join(kind.name for kind in self._panels)
        return f"PanelSet({kinds})"

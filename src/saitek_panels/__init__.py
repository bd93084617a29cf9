"""Saitek Panels - Drive Saitek Pro Flight Radio, Multi and FIP panels.

This package encodes display frames for the Saitek Radio and Multi
panels, sends them over USB, and decodes button and encoder input
reports into events.

Example:
    from saitek_panels import MultiLED, open_manager

    with open_manager() as manager:
        manager.subscribe(print)
        manager.send_radio("118.00", "118.50", "121.30", "121.90")
        manager.send_multi("  250", " 3000", MultiLED.AP | MultiLED.HDG)
"""

from saitek_panels.config import ManagerConfig
from saitek_panels.constants import (
    FIP_PID,
    MULTI_PID,
    RADIO_PID,
    SUPPORTED_PIDS,
    VENDOR_ID,
)
from saitek_panels.device import (
    PanelManager,
    enumerate_panels,
    find_panel_info,
    open_manager,
)
from saitek_panels.exceptions import (
    ClosedError,
    ConfigError,
    DeviceBusyError,
    EncodeBadDotError,
    EncodeError,
    EncodeOverflowError,
    ImageError,
    IOFailedError,
    IOTimeoutError,
    PanelNotFoundError,
    PanelOpenError,
    PermissionDeniedError,
    SaitekPanelError,
    ShortWriteError,
    TransportError,
)
from saitek_panels.fip import ResizeMode, image_to_page, load_page
from saitek_panels.frames import (
    build_multi_frame,
    build_radio_frame,
    format_frequency,
    format_multi_value,
)
from saitek_panels.glyphs import decode_field, encode_field
from saitek_panels.inputs import FIPCode, MultiCode, RadioCode, ReportDecoder
from saitek_panels.models import (
    EventKind,
    MultiLED,
    PanelEvent,
    PanelInfo,
    PanelKind,
    PanelSet,
    PanelStatus,
)
from saitek_panels.transport import TransportType

__version__ = "1.0.0"

__all__ = [
    "FIP_PID",
    "MULTI_PID",
    "RADIO_PID",
    "SUPPORTED_PIDS",
    "VENDOR_ID",
    "ClosedError",
    "ConfigError",
    "DeviceBusyError",
    "EncodeBadDotError",
    "EncodeError",
    "EncodeOverflowError",
    "EventKind",
    "FIPCode",
    "IOFailedError",
    "IOTimeoutError",
    "ImageError",
    "ManagerConfig",
    "MultiCode",
    "MultiLED",
    "PanelEvent",
    "PanelInfo",
    "PanelKind",
    "PanelManager",
    "PanelNotFoundError",
    "PanelOpenError",
    "PanelSet",
    "PanelStatus",
    "PermissionDeniedError",
    "RadioCode",
    "ReportDecoder",
    "ResizeMode",
    "SaitekPanelError",
    "ShortWriteError",
    "TransportError",
    "TransportType",
    "__version__",
    "build_multi_frame",
    "build_radio_frame",
    "decode_field",
    "encode_field",
    "enumerate_panels",
    "find_panel_info",
    "format_frequency",
    "format_multi_value",
    "image_to_page",
    "load_page",
    "open_manager",
]

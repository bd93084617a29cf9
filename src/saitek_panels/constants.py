"""Constants for Saitek Flight Simulator panel communication."""

from typing import Final

# Saitek (now Logitech) USB Vendor ID
VENDOR_ID: Final[int] = 0x06A3

# Product IDs
RADIO_PID: Final[int] = 0x0D05
MULTI_PID: Final[int] = 0x0D06
FIP_PID: Final[int] = 0xA2AE

SUPPORTED_PIDS: Final[tuple[int, ...]] = (RADIO_PID, MULTI_PID, FIP_PID)

# SET_REPORT control transfer envelope used for every write
BM_REQUEST_TYPE: Final[int] = 0x21  # Host-to-device, class, interface
B_REQUEST_SET_REPORT: Final[int] = 0x09
W_VALUE_REPORT: Final[int] = 0x0300  # Report type 3, report ID 0
W_INDEX: Final[int] = 0x00
REPORT_ID: Final[int] = 0x00

# Interrupt IN endpoint (USB transport only; hidapi resolves it itself)
INPUT_ENDPOINT: Final[int] = 0x81
USB_INTERFACE: Final[int] = 0

# Seven-segment display fields
FIELD_CELLS: Final[int] = 5
BLANK: Final[int] = 0x0F
MINUS: Final[int] = 0x0E
DOT_FLAG: Final[int] = 0xD0

# Output frame sizes (in bytes)
RADIO_FRAME_SIZE: Final[int] = 4 * FIELD_CELLS + 2  # 22 bytes
MULTI_FRAME_SIZE: Final[int] = 2 * FIELD_CELLS + 2  # 12 bytes
RADIO_TRAILER: Final[bytes] = bytes([0x00, 0x00])
MULTI_TRAILER: Final[int] = 0xFF
MULTI_LED_OFFSET: Final[int] = 10

# Input report sizes (in bytes)
RADIO_REPORT_SIZE: Final[int] = 3
MULTI_REPORT_SIZE: Final[int] = 3
FIP_REPORT_SIZE: Final[int] = 2

# FIP page geometry (24-bit RGB)
FIP_WIDTH: Final[int] = 320
FIP_HEIGHT: Final[int] = 240
FIP_PAGE_BYTES: Final[int] = FIP_WIDTH * FIP_HEIGHT * 3  # 230400 bytes

# Manager defaults (seconds)
DEFAULT_RECONNECT_INTERVAL: Final[float] = 2.0
DEFAULT_WRITE_TIMEOUT: Final[float] = 0.5
DEFAULT_READ_TIMEOUT: Final[float] = 0.1
DEFAULT_BUSY_RETRIES: Final[int] = 3
DEFAULT_BUSY_BACKOFF: Final[float] = 0.25

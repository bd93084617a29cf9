"""USB transports for Saitek panels.

Every panel write is the same HID SET_REPORT control transfer:

    bmRequestType = 0x21  (host to device, class, interface)
    bRequest      = 0x09  (SET_REPORT)
    wValue        = 0x0300 (report type 3, report ID 0)
    wIndex        = 0
    data          = frame

Two backends implement :class:`PanelTransport`:

- HidTransport: hidapi (default). ``send_feature_report`` with a leading
  report ID 0 byte issues exactly the transfer above; hidapi strips the
  ID byte from the payload.
- UsbTransport: pyusb (libusb). Sends the control transfer verbatim and
  reads the interrupt IN endpoint, optionally detaching the kernel HID
  driver first.

Tests inject their own PanelTransport.
"""

import errno
import logging
import sys
import threading
import time
from abc import ABC, abstractmethod
from enum import Enum
from types import TracebackType
from typing import TYPE_CHECKING, Any, Self

import hid
import usb.backend.libusb1
import usb.core
import usb.util

from saitek_panels.constants import (
    B_REQUEST_SET_REPORT,
    BM_REQUEST_TYPE,
    INPUT_ENDPOINT,
    USB_INTERFACE,
    VENDOR_ID,
)
from saitek_panels.exceptions import (
    DeviceBusyError,
    IOFailedError,
    IOTimeoutError,
    PanelNotFoundError,
    PanelOpenError,
    PermissionDeniedError,
    ShortWriteError,
)

if TYPE_CHECKING:
    from saitek_panels.config import ManagerConfig
    from saitek_panels.models import PanelInfo

logger = logging.getLogger(__name__)

# HID report types (high byte of wValue)
_REPORT_TYPE_OUTPUT = 0x02
_REPORT_TYPE_FEATURE = 0x03

_PERMISSION_HINTS = {
    "darwin": (
        "Grant Input Monitoring to this application in System Settings > "
        "Privacy & Security > Input Monitoring, then restart it."
    ),
    "linux": (
        "Add a udev rule such as "
        'SUBSYSTEM=="usb", ATTRS{idVendor}=="06a3", MODE="0666" '
        "and replug the panel."
    ),
}


class TransportType(Enum):
    """Available transport backends."""

    AUTO = "auto"
    HID = "hid"
    USB = "usb"


def permission_hint(platform: str | None = None) -> str:
    """Return the actionable instructions for a permission failure."""
    platform = sys.platform if platform is None else platform
    for prefix, hint in _PERMISSION_HINTS.items():
        if platform.startswith(prefix):
            return hint
    return "Run the application with access to USB HID devices."


def open_error(
    name: str, code: int | None, detail: object
) -> PanelOpenError | IOFailedError:
    """Map an OS error number from an open attempt to the error taxonomy."""
    if code in (errno.EACCES, errno.EPERM):
        msg = f"Permission denied opening {name}: {detail}. {permission_hint()}"
        return PermissionDeniedError(msg)
    if code == errno.EBUSY:
        msg = f"{name} is in use by another process: {detail}"
        return DeviceBusyError(msg)
    if code in (errno.ENODEV, errno.ENOENT):
        msg = f"{name} not found: {detail}"
        return PanelNotFoundError(msg)
    if code is None and sys.platform == "darwin":
        # IOHIDDeviceOpen reports no errno; a refused open is a missing
        # Input Monitoring grant.
        msg = f"Failed to open {name}: {detail}. {permission_hint('darwin')}"
        return PermissionDeniedError(msg)
    msg = f"Failed to open {name}: {detail}"
    return IOFailedError(msg)


class UsbContext:
    """Process-wide libusb context shared by all USB transports.

    Reference counted: the panel manager calls init() on start and
    teardown() on stop; the backend is released when the last owner
    tears down.
    """

    _lock = threading.Lock()
    _refs = 0
    _backend: Any = None

    @classmethod
    def init(cls) -> None:
        with cls._lock:
            cls._refs += 1
            if cls._refs == 1:
                cls._backend = usb.backend.libusb1.get_backend()
                logger.debug(
                    "libusb backend %s", "loaded" if cls._backend else "unavailable"
                )

    @classmethod
    def teardown(cls) -> None:
        with cls._lock:
            if cls._refs == 0:
                return
            cls._refs -= 1
            if cls._refs == 0:
                cls._backend = None

    @classmethod
    def backend(cls) -> Any:
        """Return the libusb backend, or None to let pyusb pick one."""
        return cls._backend

    @classmethod
    def active(cls) -> bool:
        return cls._refs > 0


class PanelTransport(ABC):
    """Blocking control/read access to one opened panel."""

    def __init__(self, info: "PanelInfo") -> None:
        self._info = info

    @property
    def info(self) -> "PanelInfo":
        return self._info

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Return True while the handle is usable."""
        ...

    @abstractmethod
    def open(self) -> None:
        """Acquire the device handle.

        Raises:
            PanelNotFoundError, PermissionDeniedError, DeviceBusyError,
            IOFailedError.
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the device handle. Safe to call more than once."""
        ...

    @abstractmethod
    def control(
        self,
        request_type: int,
        request: int,
        value: int,
        index: int,
        data: bytes,
        timeout: float,
    ) -> int:
        """Perform a control OUT transfer.

        Returns:
            Number of payload bytes the device accepted.

        Raises:
            IOTimeoutError, IOFailedError, ShortWriteError.
        """
        ...

    @abstractmethod
    def read(self, size: int, timeout: float) -> bytes:
        """Read one input report, or b"" if none arrived within timeout.

        Raises:
            IOFailedError: If the device is gone or the handle closed.
        """
        ...

    def __enter__(self) -> Self:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()


def _check_written(name: str, written: int, expected: int) -> int:
    if written < expected:
        msg = f"Short write to {name}: {written} of {expected} bytes"
        raise ShortWriteError(msg)
    return expected


class HidTransport(PanelTransport):
    """Transport over hidapi, opened by HID path."""

    def __init__(self, info: "PanelInfo") -> None:
        super().__init__(info)
        self._device: hid.device | None = None

    @property
    def is_open(self) -> bool:
        return self._device is not None

    def open(self) -> None:
        device = hid.device()
        try:
            device.open_path(self._info.path)
        except OSError as e:
            raise open_error(self._info.name, e.errno, e) from e
        self._device = device
        logger.debug("Opened %s via hidapi", self._info.name)

    def close(self) -> None:
        device, self._device = self._device, None
        if device is not None:
            device.close()

    def control(
        self,
        request_type: int,
        request: int,
        value: int,
        index: int,
        data: bytes,
        timeout: float,
    ) -> int:
        if request_type != BM_REQUEST_TYPE or request != B_REQUEST_SET_REPORT:
            msg = (
                f"hidapi only issues SET_REPORT transfers, got "
                f"bmRequestType={request_type:#04x} bRequest={request:#04x}"
            )
            raise ValueError(msg)

        device = self._require_open()
        report_type, report_id = value >> 8, value & 0xFF
        report = bytes([report_id]) + bytes(data)

        started = time.monotonic()
        try:
            if report_type == _REPORT_TYPE_FEATURE:
                result: int = device.send_feature_report(report)
            elif report_type == _REPORT_TYPE_OUTPUT:
                result = device.write(report)
            else:
                msg = f"Unsupported HID report type {report_type:#04x}"
                raise ValueError(msg)
        except OSError as e:
            msg = f"Failed to send report to {self._info.name}: {e}"
            raise IOFailedError(msg) from e

        if result < 0:
            msg = f"Report rejected by {self._info.name} (result={result})"
            raise IOFailedError(msg)

        elapsed = time.monotonic() - started
        if elapsed > timeout:
            msg = (
                f"Control transfer to {self._info.name} took {elapsed:.3f}s "
                f"(deadline {timeout:.3f}s)"
            )
            raise IOTimeoutError(msg)

        # hidapi counts the report ID byte
        return _check_written(self._info.name, result - 1, len(data))

    def read(self, size: int, timeout: float) -> bytes:
        device = self._require_open()
        try:
            data = device.read(size, int(timeout * 1000))
        except (OSError, ValueError) as e:
            msg = f"Failed to read from {self._info.name}: {e}"
            raise IOFailedError(msg) from e
        return bytes(data)

    def _require_open(self) -> hid.device:
        if self._device is None:
            msg = f"{self._info.name} is not open"
            raise IOFailedError(msg)
        return self._device


class UsbTransport(PanelTransport):
    """Transport over pyusb (libusb backend).

    Follows the libusb sequence: find by VID/PID, detach the kernel driver
    if requested, set configuration, claim interface 0.
    """

    def __init__(
        self, info: "PanelInfo", auto_detach_kernel_driver: bool = True
    ) -> None:
        super().__init__(info)
        self._auto_detach = auto_detach_kernel_driver
        self._device: Any = None
        self._detached = False

    @property
    def is_open(self) -> bool:
        return self._device is not None

    def open(self) -> None:
        try:
            device = usb.core.find(
                idVendor=VENDOR_ID,
                idProduct=self._info.product_id,
                backend=UsbContext.backend(),
            )
        except usb.core.NoBackendError as e:
            msg = f"No libusb backend available for {self._info.name}: {e}"
            raise IOFailedError(msg) from e
        if device is None:
            msg = f"{self._info.name} not found on the USB bus"
            raise PanelNotFoundError(msg)

        try:
            if self._auto_detach and self._kernel_driver_active(device):
                device.detach_kernel_driver(USB_INTERFACE)
                self._detached = True
                logger.debug("Detached kernel driver from %s", self._info.name)
            device.set_configuration()
            usb.util.claim_interface(device, USB_INTERFACE)
        except usb.core.USBError as e:
            usb.util.dispose_resources(device)
            raise open_error(self._info.name, e.errno, e) from e

        self._device = device
        logger.debug("Opened %s via libusb", self._info.name)

    def close(self) -> None:
        device, self._device = self._device, None
        if device is None:
            return
        try:
            usb.util.release_interface(device, USB_INTERFACE)
            if self._detached:
                device.attach_kernel_driver(USB_INTERFACE)
        except usb.core.USBError as e:
            logger.debug("Releasing %s: %s", self._info.name, e)
        finally:
            self._detached = False
            usb.util.dispose_resources(device)

    def control(
        self,
        request_type: int,
        request: int,
        value: int,
        index: int,
        data: bytes,
        timeout: float,
    ) -> int:
        device = self._require_open()
        try:
            written: int = device.ctrl_transfer(
                request_type,
                request,
                value,
                index,
                bytes(data),
                timeout=int(timeout * 1000),
            )
        except usb.core.USBTimeoutError as e:
            msg = (
                f"Control transfer to {self._info.name} "
                f"timed out after {timeout:.3f}s"
            )
            raise IOTimeoutError(msg) from e
        except usb.core.USBError as e:
            msg = f"Control transfer to {self._info.name} failed: {e}"
            raise IOFailedError(msg) from e
        return _check_written(self._info.name, written, len(data))

    def read(self, size: int, timeout: float) -> bytes:
        device = self._require_open()
        try:
            data = device.read(INPUT_ENDPOINT, size, timeout=int(timeout * 1000))
        except usb.core.USBTimeoutError:
            return b""
        except usb.core.USBError as e:
            msg = f"Failed to read from {self._info.name}: {e}"
            raise IOFailedError(msg) from e
        return bytes(data)

    def _kernel_driver_active(self, device: Any) -> bool:
        try:
            return bool(device.is_kernel_driver_active(USB_INTERFACE))
        except NotImplementedError:
            # Not supported by the backend on this platform
            return False

    def _require_open(self) -> Any:
        if self._device is None:
            msg = f"{self._info.name} is not open"
            raise IOFailedError(msg)
        return self._device


def create_transport(info: "PanelInfo", config: "ManagerConfig") -> PanelTransport:
    """Create an unopened transport for a panel.

    AUTO selects hidapi, which works without detaching the OS driver.

    Raises:
        ValueError: If an invalid transport type is configured.
    """
    transport_type = config.transport
    if transport_type == TransportType.AUTO:
        transport_type = TransportType.HID

    if transport_type == TransportType.HID:
        return HidTransport(info)
    if transport_type == TransportType.USB:
        return UsbTransport(
            info, auto_detach_kernel_driver=config.auto_detach_kernel_driver
        )

    msg = f"Unknown transport type: {transport_type}"
    raise ValueError(msg)



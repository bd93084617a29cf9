"""Pytest configuration and fixtures."""

from __future__ import annotations

import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest

from saitek_panels.config import ManagerConfig
from saitek_panels.constants import MULTI_PID, RADIO_PID, VENDOR_ID
from saitek_panels.device import PanelManager
from saitek_panels.models import PanelInfo, PanelKind
from saitek_panels.transport import PanelTransport

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(frozen=True)
class ControlCall:
    """One control transfer observed by the fake bus."""

    panel: PanelKind
    request_type: int
    request: int
    value: int
    index: int
    data: bytes


class FakeBus:
    """Scripted stand-in for the USB bus shared by every FakeTransport.

    Reopening a panel creates a new transport, so scripts and recordings
    live here rather than on the transport.
    """

    def __init__(self) -> None:
        self.calls: list[ControlCall] = []
        self.open_errors: dict[PanelKind, list[Exception]] = defaultdict(list)
        self.write_errors: dict[PanelKind, list[Exception]] = defaultdict(list)
        self.read_errors: dict[PanelKind, list[Exception]] = defaultdict(list)
        self.reports: dict[PanelKind, deque[bytes]] = defaultdict(deque)
        self.open_attempts: dict[PanelKind, int] = defaultdict(int)
        self.gate: threading.Event | None = None
        self._lock = threading.Lock()

    def factory(self, info: PanelInfo, config: ManagerConfig) -> FakeTransport:
        return FakeTransport(info, self)

    def push_report(self, kind: PanelKind, report: bytes) -> None:
        with self._lock:
            self.reports[kind].append(report)

    def fail_reads(self, kind: PanelKind, *errors: Exception) -> None:
        with self._lock:
            self.read_errors[kind].extend(errors)

    def frames(self, kind: PanelKind) -> list[bytes]:
        with self._lock:
            return [call.data for call in self.calls if call.panel == kind]


class FakeTransport(PanelTransport):
    """Recording transport driven by a FakeBus."""

    def __init__(self, info: PanelInfo, bus: FakeBus) -> None:
        super().__init__(info)
        self._bus = bus
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        kind = self._info.kind
        self._bus.open_attempts[kind] += 1
        errors = self._bus.open_errors[kind]
        if errors:
            raise errors.pop(0)
        self._open = True

    def close(self) -> None:
        self._open = False

    def control(
        self,
        request_type: int,
        request: int,
        value: int,
        index: int,
        data: bytes,
        timeout: float,
    ) -> int:
        kind = self._info.kind
        if self._bus.gate is not None:
            self._bus.gate.wait(5.0)
        errors = self._bus.write_errors[kind]
        if errors:
            raise errors.pop(0)
        with self._bus._lock:
            self._bus.calls.append(
                ControlCall(kind, request_type, request, value, index, bytes(data))
            )
        return len(data)

    def read(self, size: int, timeout: float) -> bytes:
        with self._bus._lock:
            errors = self._bus.read_errors[self._info.kind]
            error = errors.pop(0) if errors else None
            pending = self._bus.reports[self._info.kind]
            if error is None and pending:
                return pending.popleft()
        if error is not None:
            raise error
        time.sleep(timeout)
        return b""


def wait_for(predicate, timeout: float = 2.0) -> bool:
    """Poll predicate until it is true or timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def mock_device_info() -> dict:
    """Create mock device info dictionary (hidapi format)."""
    return {
        "vendor_id": VENDOR_ID,
        "product_id": RADIO_PID,
        "interface_number": 0,
        "path": b"/dev/hidraw3",
        "serial_number": "",
        "product_string": "Saitek Pro Flight Radio Panel",
    }


@pytest.fixture
def mock_multi_info() -> dict:
    """Create mock hidapi info for a Multi Panel."""
    return {
        "vendor_id": VENDOR_ID,
        "product_id": MULTI_PID,
        "interface_number": 0,
        "path": b"/dev/hidraw4",
        "serial_number": "",
        "product_string": "Saitek Pro Flight Multi Panel",
    }


@pytest.fixture
def mock_hid_device() -> MagicMock:
    """Create a mock hid.device object."""
    device = MagicMock()
    device.open_path = MagicMock()
    device.close = MagicMock()
    # hidapi counts the leading report ID byte
    device.send_feature_report = MagicMock(side_effect=lambda report: len(report))

    def read(size: int, timeout_ms: int = 0) -> list[int]:
        time.sleep(timeout_ms / 1000)
        return []

    device.read = MagicMock(side_effect=read)
    return device


@pytest.fixture
def radio_info() -> PanelInfo:
    return PanelInfo(kind=PanelKind.RADIO, path=b"/dev/hidraw3")


@pytest.fixture
def fake_bus() -> FakeBus:
    return FakeBus()


@pytest.fixture
def test_config() -> ManagerConfig:
    """Fast timeouts; the monitor stays idle unless a test shortens it."""
    return ManagerConfig(
        reconnect_interval=30.0,
        read_timeout=0.01,
        busy_backoff=0.0,
        panels=frozenset({PanelKind.RADIO, PanelKind.MULTI}),
    )


@pytest.fixture
def hid_panels(mock_device_info: dict, mock_multi_info: dict) -> list[dict]:
    """hidapi enumeration result with a Radio and a Multi panel."""
    return [mock_device_info, mock_multi_info]


@pytest.fixture
def make_manager(
    fake_bus: FakeBus, test_config: ManagerConfig, hid_panels: list[dict]
) -> Iterator:
    """Factory for started managers wired to the fake bus.

    Yields a callable taking an optional config. Every manager created is
    stopped at teardown.
    """
    managers: list[PanelManager] = []

    with (
        patch("saitek_panels.device.hid.enumerate", return_value=hid_panels) as enum,
        patch("saitek_panels.device.UsbContext"),
    ):

        def make(config: ManagerConfig | None = None, start: bool = True):
            manager = PanelManager(
                config or test_config, transport_factory=fake_bus.factory
            )
            managers.append(manager)
            if start:
                manager.start()
            return manager

        make.enumerate = enum  # type: ignore[attr-defined]
        yield make

        for manager in managers:
            manager.stop()


@pytest.fixture
def manager(make_manager) -> PanelManager:
    """A started manager with Radio and Multi panels on the fake bus."""
    return make_manager()

"""Panel discovery and lifecycle management.

The :class:`PanelManager` owns every opened panel. Per panel it runs one
writer thread, which serializes control transfers in FIFO order, and one
reader thread, which decodes input reports and publishes events. A monitor
thread re-enumerates while an expected panel is missing or degraded.

Example:
    from saitek_panels import MultiLED, open_manager

    with open_manager() as manager:
        manager.subscribe(print)
        manager.send_radio("118.00", "118.50", "121.30", "121.90")
        manager.send_multi("  250", " 3000", MultiLED.AP | MultiLED.ALT)
"""

import logging
import queue
import threading
import time
import weakref
from collections.abc import Callable
from concurrent.futures import Future
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Self

import hid

from saitek_panels._signal import ShutdownSignal
from saitek_panels.config import ManagerConfig
from saitek_panels.constants import (
    B_REQUEST_SET_REPORT,
    BM_REQUEST_TYPE,
    MULTI_FRAME_SIZE,
    RADIO_FRAME_SIZE,
    VENDOR_ID,
    W_INDEX,
    W_VALUE_REPORT,
)
from saitek_panels.exceptions import (
    ClosedError,
    DeviceBusyError,
    IOFailedError,
    PanelNotFoundError,
    PermissionDeniedError,
    SaitekPanelError,
    TransportError,
)
from saitek_panels.frames import (
    blank_multi_frame,
    build_multi_frame,
    build_radio_frame,
    multi_frame_leds,
    set_leds,
    with_leds,
)
from saitek_panels.inputs import create_decoder
from saitek_panels.models import (
    EventKind,
    PanelEvent,
    PanelInfo,
    PanelKind,
    PanelSet,
    PanelStatus,
)
from saitek_panels.transport import (
    PanelTransport,
    UsbContext,
    create_transport,
    permission_hint,
)

if TYPE_CHECKING:
    from collections.abc import Generator
    from types import TracebackType

logger = logging.getLogger(__name__)

EventSink = Callable[[PanelEvent], None]
TransportFactory = Callable[[PanelInfo, ManagerConfig], PanelTransport]

_FRAME_SIZES = {
    PanelKind.RADIO: RADIO_FRAME_SIZE,
    PanelKind.MULTI: MULTI_FRAME_SIZE,
}

# Statuses the monitor thread tries to recover
_RECOVERABLE = frozenset({PanelStatus.MISSING, PanelStatus.DEGRADED})


def enumerate_panels() -> PanelSet:
    """Enumerate connected Saitek panels.

    The first HID interface found for each panel kind is used.

    Returns:
        PanelSet mapping each connected kind to its identity.
    """
    panels: dict[PanelKind, PanelInfo] = {}
    for dev in hid.enumerate(VENDOR_ID, 0):
        kind = PanelKind.from_product_id(dev["product_id"])
        if kind is None or kind in panels:
            continue
        panels[kind] = PanelInfo(
            kind=kind,
            path=dev["path"],
            serial_number=dev.get("serial_number") or None,
        )
    return PanelSet(panels)


def find_panel_info(kind: PanelKind) -> PanelInfo:
    """Find a connected panel of the given kind.

    Raises:
        PanelNotFoundError: If no such panel is connected.
    """
    panels = enumerate_panels()
    if kind not in panels:
        msg = f"No {kind.display_name} found"
        raise PanelNotFoundError(msg)
    return panels[kind]


@dataclass
class _WriteRequest:
    """One queued write: a full frame, or an LED change for the Multi panel."""

    frame: bytes | None = None
    leds: tuple[int, bool] | None = None
    future: "Future[int]" = field(default_factory=Future)


class _PanelWorker:
    """Owns one panel: its transport, write serializer and reader thread."""

    def __init__(
        self,
        info: PanelInfo,
        config: ManagerConfig,
        transport_factory: TransportFactory,
        publish: "weakref.WeakMethod[Callable[[PanelEvent], None]]",
        shutdown: ShutdownSignal,
    ) -> None:
        self.info = info
        self._config = config
        self._factory = transport_factory
        self._publish_ref = publish
        self._shutdown = shutdown
        self._stop = ShutdownSignal()

        self._status = PanelStatus.CLOSED
        self._transport: PanelTransport | None = None
        self._generation = 0
        self._lost = False
        # Guards transport swaps; the read lock is held around each read
        self._transport_lock = threading.RLock()
        self._read_lock = threading.Lock()

        self._queue: queue.Queue[_WriteRequest | None] = queue.Queue()
        self._submit_lock = threading.Lock()
        self._accepting = True
        self._writer: threading.Thread | None = None
        self._reader: threading.Thread | None = None

        # Last Multi frame sent; only touched by the writer thread
        self._multi_shadow: bytes | None = None

    @property
    def kind(self) -> PanelKind:
        return self.info.kind

    @property
    def status(self) -> PanelStatus:
        return self._status

    def _running(self) -> bool:
        return self._shutdown() and self._stop()

    # === Lifecycle ===

    def open(self) -> None:
        """Open the panel if it is not already open.

        Raises:
            PanelNotFoundError, PermissionDeniedError, DeviceBusyError,
            IOFailedError, ClosedError.
        """
        with self._transport_lock:
            if self._transport is not None and self._transport.is_open:
                return
            self._acquire()
        self._start_threads()

    def reconnect(self, info: PanelInfo) -> None:
        """Reopen after the panel reappeared, possibly at a new path."""
        with self._transport_lock:
            self.info = info
            self._close_transport()
            self._acquire()
        self._start_threads()
        logger.info("%s reconnected", info.name)

    def close(self) -> None:
        """Drain pending writes, stop both threads and release the handle."""
        with self._submit_lock:
            if not self._accepting:
                return
            self._accepting = False
            self._queue.put(None)

        if self._writer is not None:
            self._writer.join()
        self._stop.stop()
        if self._reader is not None:
            self._reader.join()

        with self._transport_lock:
            self._close_transport()
            self._status = PanelStatus.CLOSED

        # Fail anything left behind by a writer that never started
        while True:
            try:
                request = self._queue.get_nowait()
            except queue.Empty:
                break
            if request is not None and request.future.set_running_or_notify_cancel():
                request.future.set_exception(ClosedError())
        logger.info("Closed %s", self.info.name)

    def _acquire(self) -> None:
        """Open a fresh transport. Caller holds the transport lock."""
        try:
            self._transport = self._open_transport()
        except PermissionDeniedError:
            self._status = PanelStatus.PERMISSION_DENIED
            raise
        except PanelNotFoundError:
            self._status = PanelStatus.MISSING
            raise
        except SaitekPanelError:
            self._status = PanelStatus.DEGRADED
            raise
        self._generation += 1
        self._status = PanelStatus.OPEN
        self._lost = False
        logger.info("Opened %s", self.info.name)

    def _open_transport(self) -> PanelTransport:
        """Open a transport, retrying with backoff while the device is busy."""
        delay = self._config.busy_backoff
        attempt = 1
        while True:
            if not self._running():
                raise ClosedError
            transport = self._factory(self.info, self._config)
            try:
                transport.open()
            except DeviceBusyError as e:
                if attempt >= self._config.busy_retries:
                    raise
                logger.warning(
                    "%s busy (attempt %d/%d), retrying in %.2fs: %s",
                    self.info.name,
                    attempt,
                    self._config.busy_retries,
                    delay,
                    e,
                )
                self._shutdown.wait(delay)
                attempt += 1
                delay *= 2
                continue
            return transport

    def _close_transport(self) -> None:
        """Close the current transport. Caller holds the transport lock."""
        transport, self._transport = self._transport, None
        if transport is None:
            return
        with self._read_lock:
            try:
                transport.close()
            except (OSError, SaitekPanelError) as e:
                logger.debug("Closing %s: %s", self.info.name, e)

    def _current(self) -> tuple[PanelTransport | None, int]:
        with self._transport_lock:
            return self._transport, self._generation

    def _reopen(self, generation: int) -> bool:
        """Reopen once after a failure seen on the given transport generation.

        Returns:
            True if an open transport is available afterwards.
        """
        with self._transport_lock:
            if generation != self._generation:
                # Another thread already replaced the failed transport
                return self._transport is not None and self._transport.is_open
            self._status = PanelStatus.DEGRADED
            self._close_transport()
            try:
                self._acquire()
            except SaitekPanelError as e:
                logger.warning("Reopening %s failed: %s", self.info.name, e)
                return False
            return True

    def _mark_lost(self, error: BaseException) -> None:
        """Demote the panel after an unrecoverable transport error."""
        with self._transport_lock:
            if self._status == PanelStatus.OPEN:
                self._status = PanelStatus.DEGRADED
            self._close_transport()
            if self._lost:
                return
            self._lost = True
        logger.warning("Lost %s: %s", self.info.name, error)
        self._publish(
            PanelEvent(
                panel=self.kind,
                timestamp=time.time(),
                kind=EventKind.PANEL_LOST,
                code=-1,
            )
        )

    def _start_threads(self) -> None:
        with self._submit_lock:
            if not self._accepting:
                return
            if self._writer is None:
                self._writer = threading.Thread(
                    target=self._write_loop,
                    name=f"saitek-{self.kind.name.lower()}-writer",
                    daemon=True,
                )
                self._writer.start()
            if self._reader is None:
                self._reader = threading.Thread(
                    target=self._read_loop,
                    name=f"saitek-{self.kind.name.lower()}-reader",
                    daemon=True,
                )
                self._reader.start()

    # === Write path ===

    def submit(self, request: _WriteRequest) -> "Future[int]":
        """Queue a write behind earlier ones.

        Raises:
            ClosedError: If the worker is closing.
        """
        with self._submit_lock:
            if not self._accepting:
                raise ClosedError
            self._queue.put(request)
        return request.future

    def send(self, frame: bytes) -> int:
        """Send a frame and wait for the transfer to complete."""
        return self.submit(_WriteRequest(frame=frame)).result()

    def send_leds(self, bits: int, on: bool) -> int:
        """Update the Multi LED byte against the last frame sent.

        Returns:
            The new LED mask.
        """
        return self.submit(_WriteRequest(leds=(bits, on))).result()

    def _write_loop(self) -> None:
        while True:
            request = self._queue.get()
            if request is None:
                break
            if not request.future.set_running_or_notify_cancel():
                continue
            try:
                frame = self._resolve_frame(request)
                written = self._transfer(frame)
            except Exception as e:  # noqa: BLE001 - handed to the caller
                request.future.set_exception(e)
                continue
            if self.kind == PanelKind.MULTI:
                self._multi_shadow = frame
            if request.leds is not None:
                request.future.set_result(multi_frame_leds(frame))
            else:
                request.future.set_result(written)

    def _resolve_frame(self, request: _WriteRequest) -> bytes:
        if request.leds is None:
            return bytes(request.frame or b"")
        bits, on = request.leds
        shadow = self._multi_shadow or blank_multi_frame()
        return with_leds(shadow, set_leds(multi_frame_leds(shadow), bits, on))

    def _control(self, transport: PanelTransport | None, frame: bytes) -> int:
        if transport is None or not transport.is_open:
            msg = f"{self.info.name} is not open"
            raise IOFailedError(msg)
        written = transport.control(
            BM_REQUEST_TYPE,
            B_REQUEST_SET_REPORT,
            W_VALUE_REPORT,
            W_INDEX,
            frame,
            self._config.write_timeout,
        )
        logger.debug("Sent %d bytes to %s: %s", written, self.info.name, frame.hex())
        return written

    def _transfer(self, frame: bytes) -> int:
        """Send one frame, reopening the panel once on a transport error.

        Raises:
            IOFailedError: If the retry after reopening fails as well.
        """
        transport, generation = self._current()
        try:
            return self._control(transport, frame)
        except TransportError as e:
            logger.warning("Write to %s failed, reopening: %s", self.info.name, e)
            error: TransportError = e

        if self._reopen(generation):
            transport, _ = self._current()
            try:
                return self._control(transport, frame)
            except TransportError as e:
                error = e

        self._mark_lost(error)
        msg = f"Write to {self.info.name} failed after reopening: {error}"
        raise IOFailedError(msg) from error

    # === Read path ===

    def _read_loop(self) -> None:
        decoder = create_decoder(self.kind)
        generation = -1

        while self._running():
            transport, current = self._current()
            if transport is None or not transport.is_open:
                self._stop.wait(self._config.read_timeout)
                continue
            if current != generation:
                decoder.reset()
                generation = current

            try:
                with self._read_lock:
                    report = transport.read(
                        decoder.report_size, self._config.read_timeout
                    )
            except TransportError as e:
                if not self._running():
                    break
                logger.warning("Read from %s failed: %s", self.info.name, e)
                if not self._reopen(current):
                    self._mark_lost(e)
                continue

            if not report:
                continue
            for event in decoder.feed(report):
                self._publish(event)

    def _publish(self, event: PanelEvent) -> None:
        publish = self._publish_ref()
        if publish is not None:
            publish(event)


class PanelManager:
    """Owns every connected panel and multiplexes their I/O.

    Example:
        with PanelManager() as manager:
            manager.subscribe(on_event)
            manager.send_radio("118.00", "118.50", "121.30", "121.90")
    """

    def __init__(
        self,
        config: ManagerConfig | None = None,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            config: Manager options; defaults to ManagerConfig().
            transport_factory: Creates unopened transports; defaults to
                the backend selected by config.transport.
        """
        self._config = config or ManagerConfig()
        self._factory = transport_factory or create_transport
        self._lock = threading.Lock()
        self._workers: dict[PanelKind, _PanelWorker] = {}
        self._sinks: list[EventSink] = []
        self._shutdown = ShutdownSignal()
        self._monitor: threading.Thread | None = None
        self._started = False
        self._stopped = False

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: "TracebackType | None",
    ) -> None:
        self.stop()

    @property
    def config(self) -> ManagerConfig:
        return self._config

    @property
    def panels(self) -> PanelSet:
        """Panels currently known to the manager."""
        with self._lock:
            return PanelSet({kind: w.info for kind, w in self._workers.items()})

    def status(self, kind: PanelKind) -> PanelStatus:
        """Return the lifecycle status of a panel kind."""
        with self._lock:
            worker = self._workers.get(kind)
        return PanelStatus.MISSING if worker is None else worker.status

    # === Lifecycle ===

    def start(self) -> PanelSet:
        """Enumerate panels, open them and start the hot-plug monitor.

        Panels that fail to open are logged and left for the monitor; a
        permission failure is not retried.

        Returns:
            The panels found.

        Raises:
            ClosedError: If the manager was already stopped.
        """
        with self._lock:
            if self._stopped:
                raise ClosedError
            if self._started:
                return PanelSet({k: w.info for k, w in self._workers.items()})
            self._started = True

        UsbContext.init()
        found = enumerate_panels()
        logger.info(
            "Found %d panel(s): %s",
            len(found),
            ", ".join(info.name for info in found.values()) or "none",
        )
        for info in found.values():
            self._adopt(info, open_now=self._config.eager_open)

        self._monitor = threading.Thread(
            target=self._monitor_loop, name="saitek-hotplug", daemon=True
        )
        self._monitor.start()
        return found

    def stop(self) -> None:
        """Stop all tasks, drain pending writes and close every panel.

        Returns after every thread has exited. Safe to call more than once.
        """
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
        self._shutdown.stop()

        if self._monitor is not None:
            self._monitor.join()

        with self._lock:
            workers = list(self._workers.values())
        for worker in workers:
            worker.close()

        if self._started:
            UsbContext.teardown()
        logger.info("Panel manager stopped")

    def _adopt(self, info: PanelInfo, open_now: bool) -> None:
        with self._lock:
            if self._stopped:
                return
            worker = _PanelWorker(
                info,
                self._config,
                self._factory,
                weakref.WeakMethod(self._publish),
                self._shutdown,
            )
            self._workers[info.kind] = worker

        if open_now:
            try:
                worker.open()
            except SaitekPanelError as e:
                logger.warning("Could not open %s: %s", info.name, e)

    # === Output ===

    def send(self, kind: PanelKind, frame: bytes) -> int:
        """Send a raw frame to a panel and wait for the transfer.

        Radio and Multi frames must have their exact sizes; FIP data is
        passed through unchanged.

        Returns:
            Number of bytes the panel accepted.

        Raises:
            ValueError: If a Radio/Multi frame has the wrong size.
            ClosedError: If the manager is stopped or not started.
            PanelNotFoundError: If no panel of that kind is connected.
            PermissionDeniedError: If access to the panel was refused.
            IOFailedError: If the transfer failed after one reopen.
        """
        expected = _FRAME_SIZES.get(kind)
        if expected is not None and len(frame) != expected:
            msg = f"{kind.name} frame must be {expected} bytes, got {len(frame)}"
            raise ValueError(msg)
        worker = self._ready_worker(kind)
        return worker.send(bytes(frame))

    def send_radio(self, com1a: str, com1s: str, com2a: str, com2s: str) -> int:
        """Show four frequencies on the Radio Panel.

        Raises:
            EncodeOverflowError, EncodeBadDotError: For invalid fields.
        """
        frame = build_radio_frame(
            com1a, com1s, com2a, com2s, strict=self._config.strict
        )
        return self.send(PanelKind.RADIO, frame)

    def send_multi(self, top: str, bottom: str, leds: int = 0) -> int:
        """Show two readouts and the button LEDs on the Multi Panel.

        Raises:
            EncodeOverflowError, EncodeBadDotError: For invalid rows.
            ValueError: If leds does not fit in one byte.
        """
        frame = build_multi_frame(top, bottom, leds, strict=self._config.strict)
        return self.send(PanelKind.MULTI, frame)

    def set_leds(self, bits: int, on: bool = True) -> int:
        """Switch Multi Panel LEDs on or off, keeping the displayed rows.

        Returns:
            The LED mask now shown on the panel.
        """
        return self._ready_worker(PanelKind.MULTI).send_leds(int(bits) & 0xFF, on)

    def send_fip(self, data: bytes) -> int:
        """Write raw bytes to the FIP (see saitek_panels.fip for pages)."""
        return self.send(PanelKind.FIP, bytes(data))

    def _ready_worker(self, kind: PanelKind) -> _PanelWorker:
        with self._lock:
            if self._stopped:
                raise ClosedError
            if not self._started:
                msg = "Panel manager is not started"
                raise ClosedError(msg)
            worker = self._workers.get(kind)

        if worker is None:
            msg = f"No {kind.display_name} connected"
            raise PanelNotFoundError(msg)
        if worker.status == PanelStatus.PERMISSION_DENIED:
            msg = f"Access to {worker.info.name} was denied. {permission_hint()}"
            raise PermissionDeniedError(msg)
        if worker.status != PanelStatus.OPEN:
            worker.open()
        return worker

    # === Input ===

    def subscribe(self, sink: EventSink) -> None:
        """Register a non-blocking callable that receives every event."""
        with self._lock:
            self._sinks.append(sink)

    def unsubscribe(self, sink: EventSink) -> None:
        with self._lock:
            if sink in self._sinks:
                self._sinks.remove(sink)

    def _publish(self, event: PanelEvent) -> None:
        with self._lock:
            sinks = list(self._sinks)
        for sink in sinks:
            try:
                sink(event)
            except Exception:
                logger.exception("Event sink %r failed on %s", sink, event)

    # === Hot-plug ===

    def _needs_scan(self) -> bool:
        with self._lock:
            workers = dict(self._workers)
        for kind in self._config.panels:
            worker = workers.get(kind)
            if worker is None or worker.status in _RECOVERABLE:
                return True
        return False

    def _monitor_loop(self) -> None:
        while not self._shutdown.wait(self._config.reconnect_interval):
            if not self._needs_scan():
                continue
            try:
                found = enumerate_panels()
            except OSError as e:
                logger.warning("Panel enumeration failed: %s", e)
                continue

            for kind, info in found.items():
                if kind not in self._config.panels or not self._shutdown():
                    continue
                with self._lock:
                    worker = self._workers.get(kind)
                if worker is None:
                    logger.info("%s connected", info.name)
                    self._adopt(info, open_now=True)
                elif worker.status in _RECOVERABLE:
                    try:
                        worker.reconnect(info)
                    except SaitekPanelError as e:
                        logger.debug("%s not ready yet: %s", info.name, e)


@contextmanager
def open_manager(config: ManagerConfig | None = None) -> "Generator[PanelManager]":
    """Context manager that starts a PanelManager and stops it on exit.

    Example:
        with open_manager() as manager:
            manager.send_multi("  250", " 3000", MultiLED.HDG)
    """
    manager = PanelManager(config)
    with manager:
        yield manager

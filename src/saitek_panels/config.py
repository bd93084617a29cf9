"""Panel manager configuration."""

import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Self

from saitek_panels.constants import (
    DEFAULT_BUSY_BACKOFF,
    DEFAULT_BUSY_RETRIES,
    DEFAULT_READ_TIMEOUT,
    DEFAULT_RECONNECT_INTERVAL,
    DEFAULT_WRITE_TIMEOUT,
)
from saitek_panels.exceptions import ConfigError
from saitek_panels.models import PanelKind
from saitek_panels.transport import TransportType

ENV_PREFIX = "SAITEK_PANELS_"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def default_auto_detach() -> bool:
    """Kernel driver auto-detach is needed on macOS and Linux, not Windows."""
    return sys.platform != "win32"


@dataclass(frozen=True, slots=True)
class ManagerConfig:
    """Options for :class:`saitek_panels.device.PanelManager`.

    Durations are in seconds.
    """

    # Release the OS HID driver before claiming the interface (USB transport)
    auto_detach_kernel_driver: bool = field(default_factory=default_auto_detach)

    # Hot-plug scan period while a panel is missing or degraded
    reconnect_interval: float = DEFAULT_RECONNECT_INTERVAL

    # Deadline for one control transfer
    write_timeout: float = DEFAULT_WRITE_TIMEOUT

    # Turn codec warnings (undisplayable dots) into errors
    strict: bool = False

    transport: TransportType = TransportType.AUTO

    # Open panels during start() instead of on first send
    eager_open: bool = True

    # DeviceBusyError retries: attempts and initial backoff (doubled each time)
    busy_retries: int = DEFAULT_BUSY_RETRIES
    busy_backoff: float = DEFAULT_BUSY_BACKOFF

    # Reader poll period; bounds how long stop() waits for readers
    read_timeout: float = DEFAULT_READ_TIMEOUT

    # Panels the hot-plug monitor waits for
    panels: frozenset[PanelKind] = frozenset(PanelKind)

    def __post_init__(self) -> None:
        for name in ("reconnect_interval", "write_timeout", "read_timeout"):
            if getattr(self, name) <= 0:
                msg = f"{name} must be positive, got {getattr(self, name)}"
                raise ConfigError(msg)
        if self.busy_retries < 1:
            msg = f"busy_retries must be at least 1, got {self.busy_retries}"
            raise ConfigError(msg)
        if self.busy_backoff < 0:
            msg = f"busy_backoff cannot be negative, got {self.busy_backoff}"
            raise ConfigError(msg)

    @property
    def write_timeout_ms(self) -> int:
        return int(self.write_timeout * 1000)

    @property
    def read_timeout_ms(self) -> int:
        return int(self.read_timeout * 1000)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Self:
        """Build a config from ``SAITEK_PANELS_*`` environment variables.

        Recognized variables: ``RECONNECT_INTERVAL``, ``WRITE_TIMEOUT``,
        ``STRICT``, ``TRANSPORT`` (auto/hid/usb) and ``AUTO_DETACH``.
        Unset variables keep their defaults.

        Raises:
            ConfigError: If a variable cannot be parsed.
        """
        env = os.environ if environ is None else environ
        overrides: dict[str, object] = {}

        for key, name in (
            ("RECONNECT_INTERVAL", "reconnect_interval"),
            ("WRITE_TIMEOUT", "write_timeout"),
        ):
            raw = env.get(ENV_PREFIX + key)
            if raw is not None:
                overrides[name] = _parse_float(key, raw)

        for key, name in (
            ("STRICT", "strict"),
            ("AUTO_DETACH", "auto_detach_kernel_driver"),
        ):
            raw = env.get(ENV_PREFIX + key)
            if raw is not None:
                overrides[name] = _parse_bool(key, raw)

        raw = env.get(ENV_PREFIX + "TRANSPORT")
        if raw is not None:
            try:
                overrides["transport"] = TransportType(raw.strip().lower())
            except ValueError as e:
                choices = ", ".join(t.value for t in TransportType)
                msg = f"{ENV_PREFIX}TRANSPORT must be one of {choices}, got {raw!r}"
                raise ConfigError(msg) from e

        return replace(cls(), **overrides)


def _parse_float(key: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError as e:
        msg = f"{ENV_PREFIX}{key} must be a number, got {raw!r}"
        raise ConfigError(msg) from e


def _parse_bool(key: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    msg = f"{ENV_PREFIX}{key} must be a boolean, got {raw!r}"
    raise ConfigError(msg)

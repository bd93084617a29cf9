"""Custom exceptions for Saitek panel control."""


class SaitekPanelError(Exception):
    """Base exception for Saitek panel errors."""


class ConfigError(SaitekPanelError):
    """Raised when manager configuration is invalid."""


class ImageError(SaitekPanelError):
    """Raised when a FIP page image cannot be processed."""


class ClosedError(SaitekPanelError):
    """Raised when operating on a stopped manager."""

    def __init__(self, message: str = "Panel manager is stopped") -> None:
        super().__init__(message)


# === Open errors ===


class PanelOpenError(SaitekPanelError):
    """Base for errors raised while acquiring a panel handle."""


class PanelNotFoundError(PanelOpenError):
    """Raised when no panel of the requested kind is present."""

    def __init__(self, message: str = "No Saitek panel found") -> None:
        super().__init__(message)


class PermissionDeniedError(PanelOpenError):
    """Raised when the operating system refuses access to the panel.

    The message carries instructions: on macOS the host application needs
    Input Monitoring permission, on Linux a udev rule granting access to
    VID 06a3 is required.
    """


class DeviceBusyError(PanelOpenError):
    """Raised when another process owns the panel."""


# === Codec errors ===


class EncodeError(SaitekPanelError, ValueError):
    """Base for display field encoding errors."""


class EncodeOverflowError(EncodeError):
    """Raised when a field needs more than five display cells."""


class EncodeBadDotError(EncodeError):
    """Raised in strict mode for a decimal point that cannot be displayed.

    That is a leading dot, a dot following a blank cell, or a second dot
    in the same field.
    """


# === Transport errors ===


class TransportError(SaitekPanelError):
    """Base for USB transfer errors."""


class IOTimeoutError(TransportError):
    """Raised when a control transfer misses its deadline."""


class IOFailedError(TransportError):
    """Raised when a USB transfer fails."""


class ShortWriteError(TransportError):
    """Raised when the device accepted fewer bytes than the frame holds."""

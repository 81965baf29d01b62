"""Exception types raised by spectrascope components."""


class SpectrascopeError(Exception):
    """Base class for all spectrascope errors."""


class ConfigurationError(SpectrascopeError):
    """
    Invalid configuration or unavailable resource.

    Raised by ``initialize()`` for a missing or unsupported audio file, or when
    no suitable capture device exists. Not retried.
    """


class DeviceError(SpectrascopeError):
    """Capture device failed to start or to deliver a frame."""

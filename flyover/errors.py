"""Exception types raised by flyover."""


class FlyoverError(Exception):
    """Base class for flyover errors."""


class RouteLoadError(FlyoverError):
    """Route data could not be fetched or parsed."""


class CaptureSessionError(FlyoverError):
    """A capture session was opened while another one is still active."""


class CaptureUnavailableError(FlyoverError):
    """The encoder or frame buffer could not be allocated."""

class MirrorError(Exception):
    """Failure that is reported to the caller as a plain-text mirror error."""

    status_code = 502

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UpstreamUnavailableError(MirrorError):
    """The upstream could not be reached (DNS, connect, timeout, abort)."""

    status_code = 502


class UpstreamTargetError(MirrorError):
    """
    The inbound path/query does not form a valid upstream URL.

    This is a client-visible error caused by the caller, not an upstream
    failure, so it is reported as 400 while every transport failure is 502.
    """

    status_code = 400

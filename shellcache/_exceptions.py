__all__ = ("ShellCacheError", "NetworkFailure", "NotFound", "UpstreamNonOk", "DecodeFailure")


class ShellCacheError(Exception): ...


class NetworkFailure(ShellCacheError): ...


class NotFound(ShellCacheError): ...


class UpstreamNonOk(ShellCacheError):
    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeFailure(ShellCacheError): ...

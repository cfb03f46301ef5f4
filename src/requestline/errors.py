from typing import Union


class RequestLineError(Exception):
    """Base error. Carries the method key, HTTP verb and URL when known."""

    def __init__(
        self,
        message: str = "",
        *,
        method_key: Union[str, None] = None,
        method: Union[str, None] = None,
        url: Union[str, None] = None,
    ):
        super().__init__(message)
        self.method_key = method_key
        self.method = method
        self.url = url

    def bind(self, method_key, request) -> "RequestLineError":
        """Fill in missing call context from a method key and a Request."""
        if self.method_key is None and method_key is not None:
            self.method_key = str(method_key)
        if request is not None:
            if self.method is None:
                self.method = request.method
            if self.url is None:
                self.url = request.url
        return self


class ConfigurationError(RequestLineError):
    pass


class EncodeError(RequestLineError):
    pass


class DecodeError(RequestLineError):
    pass


class TransportFailure(RequestLineError):
    """Raised by transports when no response could be obtained."""


class ResponseReadError(RequestLineError):
    """The response began arriving but its body could not be read."""


class ConnectionFailedError(RequestLineError):
    def __init__(self, message: str = "", *, attempts: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.attempts = attempts


class HTTPStatusError(RequestLineError):
    def __init__(
        self,
        message: str = "",
        *,
        status: int = 0,
        reason: str = "",
        body: Union[bytes, None] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.status = status
        self.reason = reason
        self.body = body

    @classmethod
    def from_response(cls, method_key, response) -> "HTTPStatusError":
        message = f"status {response.status} reading {method_key}"
        body = None
        if response.body is not None:
            body = response.body.read()
            message += f"; content:\n{body.decode(response.charset, errors='replace')}"
        err = cls(message, status=response.status, reason=response.reason, body=body)
        return err.bind(method_key, response.request)


class RetryableError(RequestLineError):
    """Signals that another attempt may succeed.

    ``retry_after`` is an absolute epoch timestamp suggested by the server (or None).
    """

    def __init__(
        self,
        message: str = "",
        *,
        retry_after: Union[float, None] = None,
        cause: Union[BaseException, None] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after
        self.cause = cause

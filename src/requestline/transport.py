from typing import Callable, Union

from .template import Request
from .types import Options


class Body:
    """Response body handle.

    The underlying stream is read at most once; the bytes are cached so later reads
    (e.g. a decoder buffering before raising a retry-signal) are repeatable.
    """

    def __init__(
        self,
        source: Union[bytes, Callable[[], bytes]],
        length: Union[int, None] = None,
        close: Union[Callable[[], None], None] = None,
    ):
        if isinstance(source, (bytes, bytearray)):
            self._data: Union[bytes, None] = bytes(source)
            self._reader = None
            self.length = len(self._data)
        else:
            self._data = None
            self._reader = source
            self.length = length
        self._close = close
        self.closed = False

    @property
    def repeatable(self) -> bool:
        return self._data is not None

    def read(self) -> bytes:
        if self._data is None:
            self._data = bytes(self._reader())
            self.length = len(self._data)
        return self._data

    def text(self, charset: str = "utf-8") -> str:
        return self.read().decode(charset)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._close is not None:
            self._close()

    def __str__(self) -> str:
        return self.text() if self.repeatable else f"<Body length={self.length}>"


class Response:
    def __init__(
        self,
        status: int,
        headers: Union[dict[str, list[str]], None] = None,
        body: Union[Body, bytes, str, None] = None,
        reason: str = "",
        request: Union[Request, None] = None,
    ):
        self.status = status
        self.reason = reason
        self.headers = {k: list(v) for k, v in (headers or {}).items()}
        if isinstance(body, str):
            body = body.encode(self.charset)
        if isinstance(body, (bytes, bytearray)):
            body = Body(body)
        self.body = body
        self.request = request

    def header(self, name: str) -> Union[str, None]:
        for k, v in self.headers.items():
            if k.lower() == name.lower() and v:
                return v[0]
        return None

    @property
    def charset(self) -> str:
        content_type = self.header("Content-Type") or ""
        for part in content_type.split(";")[1:]:
            key, _, value = part.strip().partition("=")
            if key.lower() == "charset" and value:
                return value.strip('"')
        return "utf-8"

    def buffered(self) -> "Response":
        """Return a copy whose body is fully read and detached from the transport."""
        body = Body(self.body.read()) if self.body is not None else None
        self.close()
        return Response(self.status, self.headers, body, self.reason, self.request)

    def close(self) -> None:
        if self.body is not None:
            self.body.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return f"<Response status={self.status} request={self.request}>"


class Transport:
    """Sends one Request and returns its Response.

    Implementations raise TransportFailure (or any OSError) when no response could be
    obtained, and make Body.read() raise OSError when the body cannot be read.
    """

    def send(self, request: Request, options: Options) -> Response:
        raise NotImplementedError

    def close(self) -> None:
        pass

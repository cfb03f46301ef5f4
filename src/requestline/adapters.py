import contextlib

from .errors import ConfigurationError, RequestLineError, TransportFailure
from .template import Request
from .transport import Body, Response, Transport
from .types import Options


def _joined_headers(request: Request) -> dict[str, str]:
    return {k: ", ".join(v) for k, v in request.headers.items()}


def _bad_url(request: Request, e: Exception) -> ConfigurationError:
    return ConfigurationError(
        f"invalid request URL {request.url}: {e}", method=request.method, url=request.url
    )


# ---------- requests ----------
class RequestsTransport(Transport):
    def __init__(self, session=None):
        if session is None:
            import requests  # noqa: PLC0415

            self.session = requests.Session()
            self._own_session = True
        else:
            self.session = session
            self._own_session = False

    def close(self):
        if self._own_session:
            with contextlib.suppress(Exception):
                self.session.close()

    def send(self, request: Request, options: Options) -> Response:
        import requests  # noqa: PLC0415

        try:
            resp = self.session.request(
                request.method,
                request.url,
                headers=_joined_headers(request),
                data=request.body,
                timeout=(options.connect_timeout, options.read_timeout),
                allow_redirects=options.follow_redirects,
                stream=True,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransportFailure(str(e), method=request.method, url=request.url) from e
        except (
            requests.exceptions.InvalidURL,
            requests.exceptions.InvalidSchema,
            requests.exceptions.MissingSchema,
            requests.exceptions.URLRequired,
        ) as e:
            raise _bad_url(request, e) from e
        except requests.RequestException as e:
            # redirects, bad headers and the like: the request itself is at fault
            raise RequestLineError(str(e), method=request.method, url=request.url) from e

        def _read() -> bytes:
            # requests' own errors subclass IOError, so read failures surface as OSError
            return resp.content

        length = resp.headers.get("Content-Length")
        return Response(
            status=resp.status_code,
            headers={k: [v] for k, v in resp.headers.items()},
            body=Body(_read, length=int(length) if length else None, close=resp.close),
            reason=resp.reason or "",
            request=request,
        )


# ---------- httpx ----------
class HttpxTransport(Transport):
    def __init__(self, client=None):
        if client is None:
            import httpx  # noqa: PLC0415

            self.client = httpx.Client()
            self._own_client = True
        else:
            self.client = client
            self._own_client = False

    def close(self):
        if self._own_client:
            with contextlib.suppress(Exception):
                self.client.close()

    def send(self, request: Request, options: Options) -> Response:
        import httpx  # noqa: PLC0415

        try:
            req = self.client.build_request(
                request.method,
                request.url,
                headers=[(k, v) for k, values in request.headers.items() for v in values],
                content=request.body,
                timeout=httpx.Timeout(options.read_timeout, connect=options.connect_timeout),
            )
        except httpx.InvalidURL as e:
            raise _bad_url(request, e) from e
        try:
            resp = self.client.send(req, stream=True, follow_redirects=options.follow_redirects)
        except httpx.UnsupportedProtocol as e:
            raise _bad_url(request, e) from e
        except httpx.TransportError as e:
            raise TransportFailure(str(e), method=request.method, url=request.url) from e
        except httpx.HTTPError as e:
            raise RequestLineError(str(e), method=request.method, url=request.url) from e

        def _read() -> bytes:
            try:
                return resp.read()
            except httpx.HTTPError as e:
                raise OSError(str(e) or type(e).__name__) from e

        headers: dict[str, list[str]] = {}
        for k, v in resp.headers.multi_items():
            headers.setdefault(k, []).append(v)
        length = resp.headers.get("Content-Length")
        return Response(
            status=resp.status_code,
            headers=headers,
            body=Body(_read, length=int(length) if length else None, close=resp.close),
            reason=resp.reason_phrase,
            request=request,
        )

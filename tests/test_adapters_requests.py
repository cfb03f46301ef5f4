from unittest.mock import MagicMock, PropertyMock

import pytest
import requests

from requestline import (
    ConfigurationError,
    Options,
    Request,
    RequestLineError,
    RequestsTransport,
    TransportFailure,
)


def _resp(status=201, content=b"ok"):
    resp = MagicMock()
    resp.status_code = status
    resp.headers = {"Content-Type": "text/plain", "Content-Length": str(len(content))}
    resp.reason = "Created"
    resp.content = content
    return resp


def test_send_maps_request_and_options():
    session = MagicMock()
    session.request.return_value = _resp()
    transport = RequestsTransport(session)
    req = Request("POST", "http://x/a?b=1", {"X-A": ("1", "2")}, b"body")

    resp = transport.send(req, Options(connect_timeout=1, read_timeout=2, follow_redirects=True))

    args, kwargs = session.request.call_args
    assert args == ("POST", "http://x/a?b=1")
    assert kwargs["headers"] == {"X-A": "1, 2"}
    assert kwargs["data"] == b"body"
    assert kwargs["timeout"] == (1, 2)
    assert kwargs["allow_redirects"] is True
    assert kwargs["stream"] is True

    assert resp.status == 201  # noqa: PLR2004
    assert resp.reason == "Created"
    assert resp.header("content-type") == "text/plain"
    assert resp.body.length == 2  # noqa: PLR2004
    assert resp.body.read() == b"ok"
    assert resp.request is req


def test_connection_errors_become_transport_failures():
    session = MagicMock()
    session.request.side_effect = requests.ConnectionError("refused")
    with pytest.raises(TransportFailure, match="refused") as ei:
        RequestsTransport(session).send(Request("GET", "http://x/"), Options())
    assert ei.value.url == "http://x/"

    session.request.side_effect = requests.Timeout("slow")
    with pytest.raises(TransportFailure):
        RequestsTransport(session).send(Request("GET", "http://x/"), Options())


def test_body_read_errors_are_os_errors():
    resp = _resp()
    type(resp).content = PropertyMock(
        side_effect=requests.exceptions.ChunkedEncodingError("truncated")
    )
    session = MagicMock()
    session.request.return_value = resp
    out = RequestsTransport(session).send(Request("GET", "http://x/"), Options())
    with pytest.raises(OSError):
        out.body.read()


def test_close_releases_response_and_owned_session_only():
    session = MagicMock()
    resp = _resp()
    session.request.return_value = resp
    transport = RequestsTransport(session)
    with transport.send(Request("GET", "http://x/"), Options()):
        pass
    resp.close.assert_called_once()
    transport.close()
    session.close.assert_not_called()

    owned = RequestsTransport()
    owned.session = MagicMock()
    owned.close()
    owned.session.close.assert_called_once()


def test_bad_urls_and_other_request_errors_are_terminal():
    session = MagicMock()
    session.request.side_effect = requests.exceptions.MissingSchema("no scheme supplied")
    with pytest.raises(ConfigurationError, match="invalid request URL x/a"):
        RequestsTransport(session).send(Request("GET", "x/a"), Options())

    session.request.side_effect = requests.TooManyRedirects("loop")
    with pytest.raises(RequestLineError, match="loop") as ei:
        RequestsTransport(session).send(Request("GET", "http://x/"), Options())
    assert not isinstance(ei.value, TransportFailure)

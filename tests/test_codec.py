import gzip
import zlib
from typing import Any, Optional, Union

import pytest
from pydantic import BaseModel

from requestline import (
    DecodeError,
    DefaultDecoder,
    DefaultEncoder,
    DefaultErrorDecoder,
    EncodeError,
    HTTPStatusError,
    JsonDecoder,
    JsonEncoder,
    Request,
    RequestTemplate,
    Response,
    RetryableError,
    StringDecoder,
    apply_content_encoding,
    parse_retry_after,
)


class Contributor(BaseModel):
    login: str
    contributions: int


def _template():
    return RequestTemplate.from_request_line("POST /")


def test_default_encoder_str_and_bytes():
    t = _template()
    DefaultEncoder().encode("hello", str, t)
    assert t.body == b"hello"
    assert t.get_header("Content-Length") == ["5"]

    DefaultEncoder().encode(bytearray(b"\x00\xff"), bytes, t)
    assert t.body == b"\x00\xff"


def test_default_encoder_rejects_structured_values():
    with pytest.raises(EncodeError, match="not a type supported by this encoder"):
        DefaultEncoder().encode({"a": 1}, dict, _template())


def test_json_encoder_sets_body_and_content_type():
    t = _template()
    JsonEncoder().encode({"a": 1}, dict[str, Any], t)
    assert t.body == b'{"a":1}'
    assert t.get_header("Content-Type") == ["application/json"]


def test_json_encoder_keeps_existing_content_type():
    t = _template()
    t.header("Content-Type", "application/vnd.api+json")
    JsonEncoder().encode(Contributor(login="a", contributions=1), Contributor, t)
    assert t.get_header("Content-Type") == ["application/vnd.api+json"]
    assert t.body == b'{"login":"a","contributions":1}'


def test_default_decoder_passes_bytes_through():
    data = bytes(range(256))
    assert DefaultDecoder().decode(Response(200, body=data), bytes) == data


def test_default_decoder_uses_response_charset():
    resp = Response(
        200,
        {"Content-Type": ["text/plain; charset=iso-8859-1"]},
        "café".encode("latin-1"),
    )
    assert DefaultDecoder().decode(resp, str) == "café"


def test_default_decoder_404_and_empty_are_none():
    assert DefaultDecoder().decode(Response(404, body="missing"), str) is None
    assert DefaultDecoder().decode(Response(200), str) is None


def test_default_decoder_rejects_other_types():
    with pytest.raises(DecodeError):
        DefaultDecoder().decode(Response(200, body="1"), int)


def test_string_decoder_rejects_bytes():
    with pytest.raises(DecodeError):
        StringDecoder().decode(Response(200, body=b"x"), bytes)


def test_json_decoder_validates_declared_type():
    resp = Response(200, body=b'[{"login": "a", "contributions": 3}]')
    out = JsonDecoder().decode(resp, list[Contributor])
    assert out == [Contributor(login="a", contributions=3)]


def test_json_decoder_empty_and_invalid():
    assert JsonDecoder().decode(Response(200, body=b"  "), dict) is None
    with pytest.raises(DecodeError):
        JsonDecoder().decode(Response(200, body=b"{nope"), dict)


def test_parse_retry_after_seconds_and_date():
    assert parse_retry_after({"Retry-After": ["5"]}, 100.0) == 105.0  # noqa: PLR2004
    assert parse_retry_after({"retry-after": ["-3"]}, 100.0) == 100.0  # noqa: PLR2004
    ts = parse_retry_after({"Retry-After": ["Wed, 21 Oct 2015 07:28:00 GMT"]}, 0.0)
    assert ts == 1445412480.0  # noqa: PLR2004
    assert parse_retry_after({"Retry-After": ["soon"]}, 0.0) is None
    assert parse_retry_after({}, 0.0) is None


def test_default_error_decoder_status_error():
    req = Request("GET", "http://localhost/a")
    resp = Response(500, body="boom", reason="Server Error", request=req)
    err = DefaultErrorDecoder().decode("Api#get()", resp)
    assert isinstance(err, HTTPStatusError)
    assert err.status == 500  # noqa: PLR2004
    assert err.body == b"boom"
    assert str(err) == "status 500 reading Api#get(); content:\nboom"
    assert (err.method, err.url) == ("GET", "http://localhost/a")


def test_default_error_decoder_retry_after_makes_retryable():
    resp = Response(503, {"Retry-After": ["2"]}, request=Request("GET", "http://localhost/"))
    err = DefaultErrorDecoder(clock=lambda: 1000.0).decode("Api#get()", resp)
    assert isinstance(err, RetryableError)
    assert err.retry_after == 1002.0  # noqa: PLR2004
    assert isinstance(err.cause, HTTPStatusError)
    assert str(err) == "status 503 reading Api#get()"


def test_gzip_content_encoding_drops_length():
    req = Request(
        "POST",
        "http://localhost/",
        {"Content-Encoding": ("gzip",), "Content-Length": ("5",)},
        b"hello",
    )
    out = apply_content_encoding(req)
    assert out.header("Content-Length") is None
    assert gzip.decompress(out.body) == b"hello"
    # deterministic output
    assert apply_content_encoding(req).body == out.body


def test_deflate_content_encoding():
    req = Request("POST", "http://localhost/", {"content-encoding": ("deflate",)}, b"hello")
    assert zlib.decompress(apply_content_encoding(req).body) == b"hello"


def test_no_content_encoding_is_untouched():
    req = Request("POST", "http://localhost/", {"Content-Length": ("5",)}, b"hello")
    assert apply_content_encoding(req) is req


def test_optional_return_types_decode_like_their_inner_type():
    resp = Response(200, body="hi")
    assert DefaultDecoder().decode(resp, Optional[str]) == "hi"
    assert StringDecoder().decode(resp, str | None) == "hi"
    assert DefaultDecoder().decode(Response(200, body=b"\xff"), Union[bytes, None]) == b"\xff"
    with pytest.raises(DecodeError):
        DefaultDecoder().decode(resp, Union[str, int])

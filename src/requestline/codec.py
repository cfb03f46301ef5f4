import email.utils as eut
import gzip
import time
import types
import typing
import zlib
from dataclasses import replace
from typing import Any, Callable, Union

from pydantic import TypeAdapter

from .errors import DecodeError, EncodeError, HTTPStatusError, RetryableError
from .template import Request, RequestTemplate
from .transport import Response

_TEXT_TYPES = (str, Any, object)


def _unwrap_optional(tp):
    """Optional[X] and X | None -> X; anything else unchanged."""
    if typing.get_origin(tp) in (Union, types.UnionType):
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


_adapter_cache: dict = {}


def _adapter(tp) -> TypeAdapter:
    try:
        return _adapter_cache[tp]
    except KeyError:
        adapter = _adapter_cache[tp] = TypeAdapter(tp)
        return adapter
    except TypeError:
        # unhashable type expression
        return TypeAdapter(tp)


# ---------- encoders ----------


class Encoder:
    def encode(self, obj, body_type, template: RequestTemplate) -> None:
        raise NotImplementedError


class DefaultEncoder(Encoder):
    """Accepts str and bytes only; structured values need an explicit encoder."""

    def encode(self, obj, body_type, template: RequestTemplate) -> None:
        if isinstance(obj, str):
            template.set_body(obj)
        elif isinstance(obj, (bytes, bytearray)):
            template.set_body(bytes(obj))
        else:
            raise EncodeError(f"{type(obj).__name__} is not a type supported by this encoder.")


class JsonEncoder(Encoder):
    """Serialise against the declared body type with pydantic."""

    def encode(self, obj, body_type, template: RequestTemplate) -> None:
        tp = Any if body_type is None else body_type
        try:
            data = _adapter(tp).dump_json(obj)
        except Exception as e:
            raise EncodeError(f"cannot encode {type(obj).__name__} as {tp!r}: {e}") from e
        if not template.get_header("Content-Type"):
            template.header("Content-Type", "application/json")
        template.set_body(data, "utf-8")


# ---------- decoders ----------


class Decoder:
    def decode(self, response: Response, return_type) -> Any:
        raise NotImplementedError


class StringDecoder(Decoder):
    def decode(self, response: Response, return_type) -> Any:
        if response.body is None:
            return None
        if _unwrap_optional(return_type) in _TEXT_TYPES:
            return response.body.text(response.charset)
        raise DecodeError(f"{return_type!r} is not a type supported by this decoder.")


class DefaultDecoder(StringDecoder):
    """bytes pass through untouched; text types are decoded with the response charset."""

    def decode(self, response: Response, return_type) -> Any:
        if response.status == 404:  # noqa: PLR2004, http status code can be constant
            return None
        if response.body is None:
            return None
        if _unwrap_optional(return_type) in (bytes, bytearray):
            return response.body.read()
        return super().decode(response, return_type)


class JsonDecoder(Decoder):
    """Validate the JSON body against the declared return type with pydantic."""

    def decode(self, response: Response, return_type) -> Any:
        if response.status == 404 or response.body is None:  # noqa: PLR2004
            return None
        data = response.body.read()
        if not data.strip():
            return None
        if _unwrap_optional(return_type) in (bytes, bytearray):
            return data
        tp = Any if return_type in (None, object) else return_type
        try:
            return _adapter(tp).validate_json(data)
        except Exception as e:
            raise DecodeError(f"cannot decode body as {tp!r}: {e}") from e


# ---------- error decoding ----------


def parse_retry_after(headers: dict[str, list[str]], now: float) -> Union[float, None]:
    """Return the absolute epoch time suggested by a Retry-After header, or None."""
    ra = None
    for k, v in headers.items():
        if k.lower() == "retry-after" and v:
            ra = v[0].strip()
            break
    if not ra:
        return None
    try:
        return now + max(0.0, float(ra))
    except ValueError:
        # HTTP-date per RFC 7231
        try:
            ts = eut.parsedate_to_datetime(ra)
        except (TypeError, ValueError):
            return None
        return ts.timestamp() if ts is not None else None


class ErrorDecoder:
    def decode(self, method_key: str, response: Response) -> Exception:
        raise NotImplementedError


class DefaultErrorDecoder(ErrorDecoder):
    """HTTPStatusError for every status, made retryable when Retry-After is present."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock

    def decode(self, method_key: str, response: Response) -> Exception:
        err = HTTPStatusError.from_response(method_key, response)
        retry_after = parse_retry_after(response.headers, self._clock())
        if retry_after is not None:
            return RetryableError(
                str(err),
                retry_after=retry_after,
                cause=err,
                method_key=err.method_key,
                method=err.method,
                url=err.url,
            )
        return err


# ---------- content encoding ----------

_COMPRESSORS = {
    "gzip": lambda data: gzip.compress(data, mtime=0),
    "deflate": zlib.compress,
}


def apply_content_encoding(request: Request) -> Request:
    """Compress the body per Content-Encoding; drop Content-Length, which no longer holds."""
    encoding = (request.header("Content-Encoding") or "").strip().lower()
    compress = _COMPRESSORS.get(encoding)
    if compress is None or request.body is None:
        return request
    return replace(request.without_header("Content-Length"), body=compress(request.body))


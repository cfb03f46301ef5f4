import contextlib
import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from .codec import (
    Decoder,
    DefaultDecoder,
    DefaultEncoder,
    DefaultErrorDecoder,
    Encoder,
    ErrorDecoder,
    apply_content_encoding,
)
from .errors import (
    ConfigurationError,
    ConnectionFailedError,
    DecodeError,
    EncodeError,
    RequestLineError,
    ResponseReadError,
    RetryableError,
    TransportFailure,
)
from .interceptors import RequestInterceptor
from .metadata import MethodKey, MethodMetadata
from .policies import DefaultRetryer, Retryer
from .target import Target
from .template import Request, RequestTemplate
from .transport import Response, Transport
from .types import Options

FORM_TYPE = dict[str, Any]


@dataclass(frozen=True)
class MethodConfig:
    """Strategies used by one method; overrides fall back to client-wide defaults."""

    encoder: Encoder = field(default_factory=DefaultEncoder)
    decoder: Decoder = field(default_factory=DefaultDecoder)
    error_decoder: ErrorDecoder = field(default_factory=DefaultErrorDecoder)
    retryer: Retryer = field(default_factory=DefaultRetryer)
    interceptors: tuple[RequestInterceptor, ...] = ()
    decode_404: bool = False


# ---------- per-method dispatch ----------


class MethodHandler:
    def __init__(
        self,
        target: Target,
        metadata: MethodMetadata,
        config: MethodConfig,
        transport: Transport,
        options: Union[Options, None] = None,
        logger: Union[logging.Logger, None] = None,
    ):
        self.target = target
        self.metadata = metadata
        self.config = config
        self.transport = transport
        self.options = options or Options()
        self._logger = logger or logging.getLogger("requestline")

    @property
    def key(self) -> MethodKey:
        return self.metadata.key

    def invoke(self, *args, **kwargs):
        argv = self._bind(args, kwargs)
        template = self.build_template(argv)
        retryer = self.config.retryer.clone()
        while True:
            try:
                return self._execute_and_decode(template)
            except RetryableError as signal:
                try:
                    retryer.continue_or_raise(signal)
                except RetryableError:
                    raise self._exhausted(signal, retryer)  # noqa: B904
                self._logger.info(
                    f"retrying method={self.key} attempt={retryer.attempts} reason={signal}"
                )

    def _bind(self, args, kwargs) -> tuple:
        sig = self.metadata.signature
        if sig is None:
            return tuple(args)
        bound = sig.bind(None, *args, **kwargs)
        bound.apply_defaults()
        return tuple(bound.arguments[name] for name in list(sig.parameters)[1:])

    # --- template building ---
    def build_template(self, argv: tuple) -> RequestTemplate:
        md = self.metadata
        variables: dict[str, list[str]] = {}
        for b in md.bindings:
            value = argv[b.index]
            if value is None:
                continue
            if isinstance(value, Iterable) and not isinstance(value, (str, bytes, bytearray, dict)):
                expanded = [b.param.expand(v) for v in value if v is not None]
            else:
                expanded = [b.param.expand(value)]
            variables.setdefault(b.name, []).extend(expanded)
        # headers are not rescanned by request(), so every name must have a value here
        for name in md.template.placeholders():
            if not variables.get(name):
                raise ConfigurationError(
                    f"unresolved placeholder '{name}' in {md.template.method} {md.template.url}",
                    method_key=str(self.key),
                    method=md.template.method,
                )
        template = md.template.resolve(variables)

        try:
            if md.form_params:
                form = {}
                for b in md.bindings:
                    if b.name in md.form_params and argv[b.index] is not None:
                        form[b.name] = argv[b.index]
                self.config.encoder.encode(form, FORM_TYPE, template)
            elif md.body_index is not None:
                value = argv[md.body_index]
                if value is None:
                    raise EncodeError(f"body parameter {md.body_index} was None")
                self.config.encoder.encode(value, md.body_type, template)
        except RequestLineError as e:
            raise e.bind(self.key, None)
        except Exception as e:
            raise EncodeError(str(e), method_key=str(self.key)) from e
        return template

    def target_request(self, template: RequestTemplate) -> Request:
        attempt = template.copy()
        for interceptor in self.config.interceptors:
            interceptor.apply(attempt)
        return apply_content_encoding(self.target.apply(attempt))

    # --- one attempt ---
    def _execute_and_decode(self, template: RequestTemplate):
        request = self.target_request(template)
        self._logger.debug(f"req start method={self.key} {request}")
        start = time.monotonic()
        try:
            response = self.transport.send(request, self.options)
        except (TransportFailure, OSError) as e:
            with contextlib.suppress(Exception):
                self._logger.warning(f"transport error method={self.key} {request}: {e}")
            raise RetryableError(
                f"{e} executing {request}",
                cause=e,
                method_key=str(self.key),
                method=request.method,
                url=request.url,
            ) from e
        except RequestLineError as e:
            raise e.bind(self.key, request)
        if response.request is None:
            response.request = request
        self._logger.debug(
            f"req done method={self.key} status={response.status} "
            f"elapsed={time.monotonic() - start:.3f}s"
        )

        return_type = self.metadata.return_type
        if return_type is Response:
            try:
                return response.buffered()
            except OSError as e:
                raise self._read_error(e, request) from e

        with response:
            decodable = response.status < 300  # noqa: PLR2004
            if self.config.decode_404 and response.status == 404:  # noqa: PLR2004
                decodable = True
            if decodable:
                if return_type is None:
                    return None
                return self._decode(response, request)
            try:
                error = self.config.error_decoder.decode(str(self.key), response)
            except OSError as e:
                raise self._read_error(e, request) from e
            if isinstance(error, RequestLineError):
                error.bind(self.key, request)
            raise error

    def _decode(self, response: Response, request: Request):
        try:
            return self.config.decoder.decode(response, self.metadata.return_type)
        except RequestLineError as e:
            raise e.bind(self.key, request)
        except OSError as e:
            raise self._read_error(e, request) from e
        except Exception as e:
            raise DecodeError(
                str(e), method_key=str(self.key), method=request.method, url=request.url
            ) from e

    def _read_error(self, e: OSError, request: Request) -> ResponseReadError:
        return ResponseReadError(
            f"{e} reading {request}",
            method_key=str(self.key),
            method=request.method,
            url=request.url,
        )

    def _exhausted(self, signal: RetryableError, retryer: Retryer) -> Exception:
        cause = signal.cause
        if isinstance(cause, (TransportFailure, OSError)):
            self._logger.warning(
                f"giving up method={self.key} after {retryer.attempts} attempts: {cause}"
            )
            err = ConnectionFailedError(
                f"connection failed after {retryer.attempts} attempts: {signal}",
                attempts=retryer.attempts,
                method_key=signal.method_key,
                method=signal.method,
                url=signal.url,
            )
            err.__cause__ = cause
            return err
        if isinstance(cause, Exception):
            return cause
        return signal


# ---------- registry ----------


class HandlerRegistry(Mapping):
    """MethodKey -> MethodHandler, built once per client."""

    def __init__(self, handlers: Mapping[MethodKey, MethodHandler]):
        self._handlers = dict(handlers)

    def __getitem__(self, key) -> MethodHandler:
        if isinstance(key, str):
            return self._handlers[self.resolve_key(key)]
        return self._handlers[key]

    def __iter__(self):
        return iter(self._handlers)

    def __len__(self):
        return len(self._handlers)

    def resolve_key(self, key: Union[MethodKey, str]) -> MethodKey:
        return resolve_key(self._handlers, key)

    def invoke(self, key: Union[MethodKey, str], *args, **kwargs):
        return self[key].invoke(*args, **kwargs)


def resolve_key(keys, key: Union[MethodKey, str]) -> MethodKey:
    """Find the MethodKey matching ``key`` (a MethodKey or its string form)."""
    if isinstance(key, MethodKey):
        if key not in keys:
            raise ConfigurationError(f"no method matches {key}")
        return key
    matches = [k for k in keys if str(k) == key]
    if not matches:
        raise ConfigurationError(f"no method matches {key!r}")
    if len(matches) > 1:
        raise ConfigurationError(
            f"ambiguous method key {key!r}: " + ", ".join(f"{k.module}.{k}" for k in matches)
        )
    return matches[0]

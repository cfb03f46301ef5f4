import contextlib
import functools
import logging
from collections.abc import Iterable
from typing import Callable, Union

from .contract import parse_contract
from .dispatcher import HandlerRegistry, MethodConfig, MethodHandler, resolve_key
from .env import DEFAULT_PREFIX, load_config_from_env
from .errors import ConfigurationError
from .interceptors import RequestInterceptor, coerce_interceptor
from .metadata import MethodKey, MethodMetadata
from .policies import coerce_retryer
from .target import DynamicTarget, EmptyTarget, HardCodedTarget, Target
from .transport import Transport
from .types import Options

_CONFIG_FIELDS = {"encoder", "decoder", "error_decoder", "retryer", "interceptors", "decode_404"}


def _coerce_config(values: dict) -> dict:
    unknown = set(values) - _CONFIG_FIELDS
    if unknown:
        raise TypeError(f"unknown configuration keys: {', '.join(sorted(unknown))}")
    out = {k: v for k, v in values.items() if v is not None}
    if "retryer" in out:
        out["retryer"] = coerce_retryer(out["retryer"])
    if "interceptors" in out:
        out["interceptors"] = tuple(coerce_interceptor(i) for i in out["interceptors"])
    return out


class Builder:
    """Assemble client-wide defaults and per-method overrides into clients.

    Args:
        encoder, decoder, error_decoder: codec strategies (defaults: DefaultEncoder,
            DefaultDecoder, DefaultErrorDecoder)
        retryer: anything coerce_retryer accepts; cloned per invocation
        interceptors: RequestInterceptors or callables(template), applied in order
        transport: Transport (default: RequestsTransport)
        options: Options passed to the transport
        decode_404: hand 404 responses to the decoder instead of the error decoder
        url: default target URL for target()
        log_level: level for the "requestline" logger
    """

    def __init__(
        self,
        *,
        encoder=None,
        decoder=None,
        error_decoder=None,
        retryer=None,
        interceptors: Iterable = (),
        transport: Union[Transport, None] = None,
        options: Union[Options, None] = None,
        decode_404: bool = False,
        url: Union[str, None] = None,
        log_level: Union[int, str, None] = None,
    ):
        self._defaults = _coerce_config(
            {
                "encoder": encoder,
                "decoder": decoder,
                "error_decoder": error_decoder,
                "retryer": retryer,
                "interceptors": list(interceptors),
                "decode_404": decode_404,
            }
        )
        self._overrides: dict[Union[MethodKey, str], dict] = {}
        self.transport = transport
        self.options = options or Options()
        self.url = url
        self._logger = logging.getLogger("requestline")
        if log_level is not None:
            with contextlib.suppress(Exception):
                self._logger.setLevel(log_level)

    @classmethod
    def from_env(
        cls, prefix: str = DEFAULT_PREFIX, env_path: Union[str, None] = None, **kwargs
    ) -> "Builder":
        """Builder whose options, retry policy, URL and log level come from the environment.

        Explicit keyword arguments win over environment values.
        """
        config = load_config_from_env(prefix=prefix, env_path=env_path)
        kwargs.setdefault("options", config.options)
        kwargs.setdefault("retryer", config.retry)
        kwargs.setdefault("url", config.url)
        kwargs.setdefault("log_level", config.log_level)
        return cls(**kwargs)

    def request_interceptor(self, interceptor: Union[RequestInterceptor, Callable]) -> "Builder":
        self._defaults["interceptors"] = self._defaults.get("interceptors", ()) + (
            coerce_interceptor(interceptor),
        )
        return self

    def configure(self, key: Union[MethodKey, str], **overrides) -> "Builder":
        """Per-method overrides, keyed by MethodKey or its string form ("Api#get(str)")."""
        self._overrides.setdefault(key, {}).update(_coerce_config(overrides))
        return self

    def _transport(self) -> Transport:
        if self.transport is None:
            from .adapters import RequestsTransport  # noqa: PLC0415

            self.transport = RequestsTransport()
        return self.transport

    def registry(self, target: Target, metadata: Iterable[MethodMetadata]) -> HandlerRegistry:
        metadata = list(metadata)
        keys = [md.key for md in metadata]
        if len(set(keys)) != len(keys):
            raise ConfigurationError(f"duplicate method keys for {target}")
        per_method: dict[MethodKey, dict] = {}
        for key, values in self._overrides.items():
            per_method.setdefault(resolve_key(keys, key), {}).update(values)

        transport = self._transport()
        handlers = {}
        for md in metadata:
            config = MethodConfig(**{**self._defaults, **per_method.get(md.key, {})})
            handlers[md.key] = MethodHandler(
                target, md, config, transport, self.options, self._logger
            )
        return HandlerRegistry(handlers)

    def target(
        self,
        api_type: type,
        url: Union[str, Target, Callable[[], str], None] = None,
        name: Union[str, None] = None,
    ):
        """Return an instance of a generated subclass of ``api_type`` that sends requests.

        ``url`` may be a URL string, a Target, or a zero-argument callable resolving the
        URL per request. Without one, the builder's ``url`` is used, else an EmptyTarget.
        """
        url = url if url is not None else self.url
        if isinstance(url, Target):
            target = url
        elif isinstance(url, str):
            target = HardCodedTarget(api_type, url, name)
        elif callable(url):
            target = DynamicTarget(api_type, url, name or api_type.__name__)
        else:
            target = EmptyTarget(api_type)
        metadata = parse_contract(target.api_type)
        return build_client(target, metadata, self.registry(target, metadata))


# ---------- generated clients ----------


def _forwarder(key: MethodKey, func: Callable) -> Callable:
    @functools.wraps(func)
    def method(self, *args, **kwargs):
        return self._requestline_handlers[key].invoke(*args, **kwargs)

    return method


def _client_eq(self, other):
    other_target = getattr(other, "_requestline_target", None)
    if other_target is None:
        return NotImplemented
    return self._requestline_target == other_target


def build_client(target: Target, metadata: Iterable[MethodMetadata], registry: HandlerRegistry):
    api_type = target.api_type
    namespace = {
        "__module__": api_type.__module__,
        "__qualname__": f"{api_type.__qualname__}Client",
        "__eq__": _client_eq,
        "__hash__": lambda self: hash(self._requestline_target),
        "__repr__": lambda self: repr(self._requestline_target),
    }
    for md in metadata:
        namespace[md.func.__name__] = _forwarder(md.key, md.func)
    cls = type(f"{api_type.__name__}Client", (api_type,), namespace)
    client = cls.__new__(cls)
    object.__setattr__(client, "_requestline_target", target)
    object.__setattr__(client, "_requestline_handlers", registry)
    return client

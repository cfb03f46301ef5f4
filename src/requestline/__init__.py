from .adapters import HttpxTransport, RequestsTransport
from .client import Builder, build_client
from .codec import (
    Decoder,
    DefaultDecoder,
    DefaultEncoder,
    DefaultErrorDecoder,
    Encoder,
    ErrorDecoder,
    JsonDecoder,
    JsonEncoder,
    StringDecoder,
    apply_content_encoding,
    parse_retry_after,
)
from .contract import body, headers, parse_contract, parse_method, request_line
from .dispatcher import HandlerRegistry, MethodConfig, MethodHandler
from .env import load_config_from_env
from .errors import (
    ConfigurationError,
    ConnectionFailedError,
    DecodeError,
    EncodeError,
    HTTPStatusError,
    RequestLineError,
    ResponseReadError,
    RetryableError,
    TransportFailure,
)
from .interceptors import (
    AuthInterceptor,
    BasicAuthInterceptor,
    FunctionInterceptor,
    HeaderInterceptor,
    RequestInterceptor,
)
from .metadata import MethodKey, MethodMetadata, Param, ParamBinding
from .policies import DefaultRetryer, NeverRetry, Retryer, coerce_retryer
from .target import DynamicTarget, EmptyTarget, HardCodedTarget, Target
from .template import Request, RequestTemplate
from .transport import Body, Response, Transport
from .types import AuthConfig, ClientConfig, Options, RetryConfig

__all__ = [
    "Builder",
    "build_client",
    "request_line",
    "headers",
    "body",
    "parse_contract",
    "parse_method",
    "Param",
    "ParamBinding",
    "MethodKey",
    "MethodMetadata",
    "RequestTemplate",
    "Request",
    "Response",
    "Body",
    "Transport",
    "RequestsTransport",
    "HttpxTransport",
    "Encoder",
    "DefaultEncoder",
    "JsonEncoder",
    "Decoder",
    "StringDecoder",
    "DefaultDecoder",
    "JsonDecoder",
    "ErrorDecoder",
    "DefaultErrorDecoder",
    "parse_retry_after",
    "apply_content_encoding",
    "RequestInterceptor",
    "FunctionInterceptor",
    "HeaderInterceptor",
    "AuthInterceptor",
    "BasicAuthInterceptor",
    "Retryer",
    "DefaultRetryer",
    "NeverRetry",
    "coerce_retryer",
    "Target",
    "HardCodedTarget",
    "DynamicTarget",
    "EmptyTarget",
    "HandlerRegistry",
    "MethodHandler",
    "MethodConfig",
    "RetryConfig",
    "Options",
    "AuthConfig",
    "ClientConfig",
    "load_config_from_env",
    "RequestLineError",
    "ConfigurationError",
    "EncodeError",
    "DecodeError",
    "TransportFailure",
    "ResponseReadError",
    "ConnectionFailedError",
    "HTTPStatusError",
    "RetryableError",
]

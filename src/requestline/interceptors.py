import base64
from typing import Callable, Union

from .template import RequestTemplate
from .types import AuthConfig


class RequestInterceptor:
    """Mutates a resolved template before each attempt is sent.

    Interceptors run in registration order on a fresh copy of the template for every
    attempt, so each one sees what earlier ones did and retries re-apply them all.
    """

    def apply(self, template: RequestTemplate) -> None:
        raise NotImplementedError


class FunctionInterceptor(RequestInterceptor):
    def __init__(self, fn: Callable[[RequestTemplate], None]):
        self.fn = fn

    def apply(self, template: RequestTemplate) -> None:
        self.fn(template)


class HeaderInterceptor(RequestInterceptor):
    def __init__(self, headers: dict[str, str]):
        self.headers = dict(headers)

    def apply(self, template: RequestTemplate) -> None:
        for name, value in self.headers.items():
            template.header(name, value)


class AuthInterceptor(RequestInterceptor):
    """Inject a token as a header (``<scheme> <token>``) or as a query parameter.

    Other keywords for kwargs (used when auth_config is not given):
    - auth_header: str
    - auth_scheme: str
    - auth_in: "header" | "query"
    - auth_query_param: str
    """

    def __init__(
        self,
        token: Union[str, Callable[[], str]],
        auth_config: Union[AuthConfig, None] = None,
        **kwargs,
    ):
        self.token = token
        if auth_config is not None:
            self.auth_config = auth_config
        else:
            self.auth_config = AuthConfig(
                header=kwargs.get("auth_header", "Authorization"),
                scheme=kwargs.get("auth_scheme", "Bearer"),
                in_=kwargs.get("auth_in", "header"),
                query_param=kwargs.get("auth_query_param", "api_key"),
            )

    def apply(self, template: RequestTemplate) -> None:
        # a callable token is re-read per attempt so refreshed credentials are picked up
        token = self.token() if callable(self.token) else self.token
        ac = self.auth_config
        if ac.in_ == "query":
            template.query(ac.query_param, token)
        else:
            template.header(ac.header, f"{ac.scheme} {token}".strip())


class BasicAuthInterceptor(RequestInterceptor):
    def __init__(self, username: str, password: str, charset: str = "utf-8"):
        raw = f"{username}:{password}".encode(charset)
        self._value = "Basic " + base64.b64encode(raw).decode("ascii")

    def apply(self, template: RequestTemplate) -> None:
        template.header("Authorization", self._value)


def coerce_interceptor(interceptor: Union[RequestInterceptor, Callable]) -> RequestInterceptor:
    if isinstance(interceptor, RequestInterceptor):
        return interceptor
    if hasattr(interceptor, "apply"):
        return FunctionInterceptor(interceptor.apply)
    if callable(interceptor):
        return FunctionInterceptor(interceptor)
    raise TypeError("interceptor must be a RequestInterceptor or a callable(template)")

from dataclasses import dataclass, field
from typing import Literal, Union


@dataclass(frozen=True)
class RetryConfig:
    # Backoff: period * multiplier ** (attempt - 2), capped at max_period (seconds)
    period: float = 0.1
    multiplier: float = 1.5
    max_period: float = 1.0

    # Budget per invocation
    max_attempts: int = 5
    max_elapsed: Union[float, None] = None


@dataclass(frozen=True)
class Options:
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    # Passed to the transport library as-is; requestline never follows redirects itself.
    follow_redirects: bool = False


@dataclass(frozen=True)
class AuthConfig:
    header: str = "Authorization"
    scheme: str = "Bearer"
    in_: Literal["header", "query"] = "header"
    query_param: str = "api_key"


@dataclass(frozen=True)
class ClientConfig:
    url: Union[str, None] = None
    options: Options = field(default_factory=Options)
    retry: RetryConfig = field(default_factory=RetryConfig)
    log_level: Union[str, None] = None

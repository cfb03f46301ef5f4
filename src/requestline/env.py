import os
from typing import Callable, Union

from .errors import ConfigurationError
from .types import ClientConfig, Options, RetryConfig

DEFAULT_PREFIX = "REQUESTLINE_"


def _parse_env_file(env_path: str) -> dict[str, str]:
    """Parse a .env file into a dict without modifying os.environ.

    KEY=VALUE pairs only; comments, blank lines and an optional ``export`` prefix are
    ignored. Surrounding single/double quotes are stripped.
    """
    values: dict[str, str] = {}
    try:
        with open(env_path) as f:
            for raw_line in f:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip().removeprefix("export ").strip()
                if key:
                    values[key] = val.strip().strip('"').strip("'")
    except FileNotFoundError:
        # a missing file just means nothing to merge
        pass
    return values


def _convert(env: dict[str, str], name: str, kind: Callable, default):
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return kind(raw)
    except ValueError as e:
        raise ConfigurationError(f"invalid value for {name}: {raw!r}") from e


def _bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise ValueError(raw)


def load_config_from_env(
    prefix: str = DEFAULT_PREFIX,
    env_path: Union[str, None] = None,
) -> ClientConfig:
    """Build a ClientConfig from environment variables.

    Recognised names (after ``prefix``): URL, CONNECT_TIMEOUT, READ_TIMEOUT,
    FOLLOW_REDIRECTS, RETRY_PERIOD, RETRY_MULTIPLIER, RETRY_MAX_PERIOD,
    RETRY_MAX_ATTEMPTS, RETRY_MAX_ELAPSED, LOG_LEVEL. Unset names keep their defaults.

    If 'env_path' is provided, variables from that .env file are used as fallbacks;
    values in the actual environment take precedence over the file.
    """
    file_env = _parse_env_file(env_path) if env_path else {}
    merged = {**file_env, **os.environ}
    env = {k[len(prefix) :]: v for k, v in merged.items() if k.startswith(prefix)}

    options, retry = Options(), RetryConfig()
    options = Options(
        connect_timeout=_convert(env, "CONNECT_TIMEOUT", float, options.connect_timeout),
        read_timeout=_convert(env, "READ_TIMEOUT", float, options.read_timeout),
        follow_redirects=_convert(env, "FOLLOW_REDIRECTS", _bool, options.follow_redirects),
    )
    retry = RetryConfig(
        period=_convert(env, "RETRY_PERIOD", float, retry.period),
        multiplier=_convert(env, "RETRY_MULTIPLIER", float, retry.multiplier),
        max_period=_convert(env, "RETRY_MAX_PERIOD", float, retry.max_period),
        max_attempts=_convert(env, "RETRY_MAX_ATTEMPTS", int, retry.max_attempts),
        max_elapsed=_convert(env, "RETRY_MAX_ELAPSED", float, retry.max_elapsed),
    )
    if retry.max_attempts < 1:
        raise ConfigurationError(f"{prefix}RETRY_MAX_ATTEMPTS must be at least 1")
    return ClientConfig(
        url=env.get("URL") or None,
        options=options,
        retry=retry,
        log_level=env.get("LOG_LEVEL") or None,
    )

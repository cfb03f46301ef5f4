from typing import Callable, Union
from urllib.parse import urlsplit

from .errors import ConfigurationError
from .template import Request, RequestTemplate


def _is_absolute(url: str) -> bool:
    return urlsplit(url).scheme in ("http", "https")


class Target:
    """Where requests for an API type go. Subclasses supply url()."""

    def __init__(self, api_type: type, name: Union[str, None] = None):
        self.api_type = api_type
        self.name = name

    def url(self) -> str:
        raise NotImplementedError

    def apply(self, template: RequestTemplate) -> Request:
        """Prefix relative template URLs with this target's URL and build the Request."""
        if not _is_absolute(template.url):
            template.insert(0, self.url().rstrip("/"))
        return template.request()


class HardCodedTarget(Target):
    def __init__(self, api_type: type, url: str, name: Union[str, None] = None):
        super().__init__(api_type, name or url)
        self._url = url

    def url(self) -> str:
        return self._url

    def _identity(self):
        return (self.api_type, self.name, self._url)

    def __eq__(self, other):
        if not isinstance(other, HardCodedTarget):
            return NotImplemented
        return self._identity() == other._identity()

    def __hash__(self):
        return hash(self._identity())

    def __repr__(self):
        return (
            f"HardCodedTarget(type={self.api_type.__name__}, name={self.name}, url={self._url})"
        )


class DynamicTarget(Target):
    """URL looked up per request, e.g. from service discovery."""

    def __init__(self, api_type: type, resolver: Callable[[], str], name: str):
        super().__init__(api_type, name)
        self.resolver = resolver

    def url(self) -> str:
        url = self.resolver()
        if not url:
            raise ConfigurationError(f"target {self.name} resolved to an empty URL")
        return url

    def __repr__(self):
        return f"DynamicTarget(type={self.api_type.__name__}, name={self.name})"


class EmptyTarget(Target):
    """For APIs whose request lines carry absolute URLs."""

    def __init__(self, api_type: type, name: str = "empty"):
        super().__init__(api_type, name)

    def url(self) -> str:
        raise ConfigurationError("EmptyTarget has no URL")

    def apply(self, template: RequestTemplate) -> Request:
        if not _is_absolute(template.url):
            raise ConfigurationError(
                f"Request with non-absolute URL not supported with empty target: {template.url}"
            )
        return template.request()

    def __repr__(self):
        return f"EmptyTarget(type={self.api_type.__name__}, name={self.name})"

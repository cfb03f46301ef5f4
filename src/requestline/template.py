"""Request templates and the concrete requests they expand into.

A :class:`RequestTemplate` describes a request with ``{name}`` placeholders in its
path, query values, header values and body template. Templates are resolved
against a mapping of placeholder names to one or more string values:

    >>> t = RequestTemplate.from_request_line("GET /users/{id}?tag={tag}")
    >>> t.resolve({"id": "42", "tag": ["a", "b"]}).request().url
    '/users/42?tag=a&tag=b'

Path values are percent-encoded (slashes preserved), query values are
percent-encoded, header values are inserted verbatim. Query keys are literal
text. A body template is rendered once every placeholder it names has a value;
``%7B`` and ``%7D`` in its literal text stand for braces.
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Union
from urllib.parse import quote, unquote

from .errors import ConfigurationError

PLACEHOLDER = re.compile(r"\{([^{}]+)\}")
_VERB = re.compile(r"^[A-Z]+$")


def placeholders(text: Union[str, None]) -> list[str]:
    if not text:
        return []
    return PLACEHOLDER.findall(text)


def _as_values(value) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (str, bytes)):
        return [value.decode() if isinstance(value, bytes) else value]
    if isinstance(value, Iterable):
        return [str(v) for v in value if v is not None]
    return [str(value)]


def _flatten(values: tuple) -> list[str]:
    return [v for value in values for v in _as_values(value)]


def _substitute(text: str, variables: Mapping[str, list[str]], encode=None) -> str:
    """Replace known placeholders with their first value; unknown ones are left as-is."""

    def _one(match: re.Match) -> str:
        values = variables.get(match.group(1))
        if not values:
            return match.group(0)
        return encode(values[0]) if encode else values[0]

    return PLACEHOLDER.sub(_one, text)


def _fan_out(value_template: str, variables: Mapping[str, list[str]], encode=None) -> list[str]:
    """Expand one value template; a lone placeholder yields one value per bound element."""
    match = PLACEHOLDER.fullmatch(value_template)
    if match:
        values = variables.get(match.group(1))
        if not values:
            return [value_template]
        return [encode(v) if encode else v for v in values]
    return [_substitute(value_template, variables, encode)]


def _encode_path(value: str) -> str:
    return quote(value, safe="/")


def _encode_query(value: str) -> str:
    return quote(value, safe="")


def _render_body(template: str, variables: Mapping[str, list[str]]) -> str:
    out, pos = [], 0
    for match in PLACEHOLDER.finditer(template):
        out.append(_unescape_braces(template[pos : match.start()]))
        out.append(variables[match.group(1)][0])
        pos = match.end()
    out.append(_unescape_braces(template[pos:]))
    return "".join(out)


def _unescape_braces(literal: str) -> str:
    return re.sub("%7[bB]", "{", re.sub("%7[dD]", "}", literal))


@dataclass(frozen=True)
class Request:
    """A fully expanded request, ready for a transport. Never mutated."""

    method: str
    url: str
    headers: dict[str, tuple[str, ...]] = field(default_factory=dict)
    body: Union[bytes, None] = None
    charset: Union[str, None] = None

    def header(self, name: str) -> Union[str, None]:
        for k, v in self.headers.items():
            if k.lower() == name.lower() and v:
                return v[0]
        return None

    def without_header(self, name: str) -> "Request":
        headers = {k: v for k, v in self.headers.items() if k.lower() != name.lower()}
        return replace(self, headers=headers)

    def __str__(self) -> str:
        return f"{self.method} {self.url}"


class RequestTemplate:
    """Mutable request builder with placeholders.

    Templates held by method metadata are shared between calls and must be treated as
    read-only; every invocation works on ``copy()`` or on the result of ``resolve()``.
    """

    def __init__(self, method: str = "GET", url: str = "", charset: str = "utf-8"):
        self.method = method
        self.url = url
        self.charset = charset
        # query name -> percent-encoded value templates, in insertion order
        self.queries: dict[str, list[str]] = {}
        self.headers: dict[str, list[str]] = {}
        self.body: Union[bytes, None] = None
        self.body_template: Union[str, None] = None

    @classmethod
    def from_request_line(cls, line: str) -> "RequestTemplate":
        parts = line.strip().split(None, 1)
        if not parts or not _VERB.match(parts[0]):
            raise ConfigurationError(f"request line must start with an HTTP verb: {line!r}")
        template = cls(parts[0])
        if len(parts) > 1:
            template.append(parts[1].strip())
        return template

    def copy(self) -> "RequestTemplate":
        other = RequestTemplate(self.method, self.url, self.charset)
        other.queries = {k: list(v) for k, v in self.queries.items()}
        other.headers = {k: list(v) for k, v in self.headers.items()}
        other.body = self.body
        other.body_template = self.body_template
        return other

    # --- path ---
    def append(self, value: str) -> "RequestTemplate":
        path, sep, query = value.partition("?")
        self.url += path
        if sep:
            self._parse_query(query)
        return self

    def insert(self, pos: int, value: str) -> "RequestTemplate":
        self.url = self.url[:pos] + value + self.url[pos:]
        return self

    def _parse_query(self, query: str) -> None:
        for pair in query.split("&"):
            if not pair:
                continue
            name, eq, value = pair.partition("=")
            values = self.queries.setdefault(unquote(name), [])
            if eq:
                values.append(value)

    # --- query ---
    def query(self, name: str, *values, encoded: bool = False) -> "RequestTemplate":
        """Replace all values of a query parameter. No values removes it."""
        self.queries.pop(name, None)
        if _flatten(values):
            self.add_query(name, *values, encoded=encoded)
        return self

    def add_query(self, name: str, *values, encoded: bool = False) -> "RequestTemplate":
        bucket = self.queries.setdefault(name, [])
        for v in _flatten(values):
            bucket.append(v if encoded else _encode_query(v))
        return self

    def query_line(self) -> str:
        pairs = []
        for name, values in self.queries.items():
            key = _encode_query(name)
            if not values:
                pairs.append(key)
            pairs.extend(f"{key}={v}" for v in values)
        return "?" + "&".join(pairs) if pairs else ""

    # --- headers ---
    def header(self, name: str, *values) -> "RequestTemplate":
        """Replace all values of a header (case-insensitive). No values removes it."""
        for existing in [k for k in self.headers if k.lower() == name.lower()]:
            del self.headers[existing]
        if _flatten(values):
            self.headers[name] = _flatten(values)
        return self

    def add_header(self, name: str, *values) -> "RequestTemplate":
        for existing, current in self.headers.items():
            if existing.lower() == name.lower():
                current.extend(_flatten(values))
                return self
        self.headers[name] = _flatten(values)
        return self

    def get_header(self, name: str) -> list[str]:
        for k, v in self.headers.items():
            if k.lower() == name.lower():
                return list(v)
        return []

    # --- body ---
    def set_body(self, data: Union[bytes, str, None], charset: Union[str, None] = None):
        if isinstance(data, str):
            charset = charset or self.charset
            data = data.encode(charset)
        if charset:
            self.charset = charset
        self.body = bytes(data) if data is not None else None
        self.body_template = None
        if self.body is None:
            self.header("Content-Length")
        else:
            self.header("Content-Length", str(len(self.body)))
        return self

    def set_body_template(self, template: Union[str, None]) -> "RequestTemplate":
        self.set_body(None)
        self.body_template = template
        return self

    # --- resolution ---
    def placeholders(self) -> list[str]:
        names = placeholders(self.url)
        for values in self.queries.values():
            for v in values:
                names.extend(placeholders(v))
        for values in self.headers.values():
            for v in values:
                names.extend(placeholders(v))
        names.extend(placeholders(self.body_template))
        return list(dict.fromkeys(names))

    def resolve(self, variables: Mapping[str, object]) -> "RequestTemplate":
        """Return a new template with every known placeholder substituted."""
        values = {name: _as_values(v) for name, v in variables.items()}
        values = {name: v for name, v in values.items() if v}
        resolved = self.copy()
        resolved.url = _substitute(self.url, values, _encode_path)
        resolved.queries = {
            name: [out for v in vals for out in _fan_out(v, values, _encode_query)]
            for name, vals in self.queries.items()
        }
        resolved.headers = {
            name: [out for v in vals for out in _fan_out(v, values)]
            for name, vals in self.headers.items()
        }
        if self.body_template is not None and all(
            name in values for name in placeholders(self.body_template)
        ):
            resolved.set_body(_render_body(self.body_template, values))
        return resolved

    def request(self) -> Request:
        unresolved = placeholders(self.url)
        for vals in self.queries.values():
            for v in vals:
                unresolved.extend(placeholders(v))
        unresolved.extend(placeholders(self.body_template))
        if unresolved:
            raise ConfigurationError(
                f"unresolved placeholder '{unresolved[0]}' in {self.method} {self.url}",
                method=self.method,
                url=self.url,
            )
        return Request(
            method=self.method,
            url=self.url + self.query_line(),
            headers={k: tuple(v) for k, v in self.headers.items()},
            body=self.body,
            charset=self.charset if self.body is not None else None,
        )

    def __repr__(self) -> str:
        return f"RequestTemplate({self.method} {self.url}{self.query_line()})"

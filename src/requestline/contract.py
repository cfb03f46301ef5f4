"""Declarative method metadata.

An API is a plain class whose methods are decorated with request lines::

    @headers("Accept: application/json")
    class Repos:
        @request_line("GET /repos/{owner}/{repo}/contributors")
        def contributors(
            self, owner: Annotated[str, Param("owner")], repo: Annotated[str, Param("repo")]
        ) -> list[Contributor]: ...

``parse_contract`` turns such a class into MethodMetadata records. Arguments annotated
with ``Param`` bind to placeholders; a single unannotated argument is the request body.
Named arguments that no placeholder references are sent as form parameters.
"""

import inspect
import typing
from collections.abc import Iterable
from typing import Any, Callable

from .errors import ConfigurationError
from .metadata import MethodKey, MethodMetadata, Param, ParamBinding
from .template import RequestTemplate, placeholders

_LINE_ATTR = "__requestline_line__"
_HEADERS_ATTR = "__requestline_headers__"
_BODY_ATTR = "__requestline_body__"


def request_line(line: str) -> Callable:
    """Mark a method as an HTTP method: ``@request_line("GET /users/{id}")``."""

    def decorator(func):
        setattr(func, _LINE_ATTR, line)
        return func

    return decorator


def headers(*lines: str) -> Callable:
    """Static headers (``"Name: value"``) for a method, or for every method of a class."""

    def decorator(obj):
        setattr(obj, _HEADERS_ATTR, tuple(lines))
        return obj

    return decorator


def body(template: str) -> Callable:
    def decorator(func):
        setattr(func, _BODY_ATTR, template)
        return func

    return decorator


def _split_header(key: MethodKey, line: str) -> tuple[str, str]:
    name, sep, value = line.partition(":")
    if not sep or not name.strip():
        raise ConfigurationError(f"{key}: header must be 'Name: value', got {line!r}")
    return name.strip(), value.strip()


def _strip_annotated(tp):
    if typing.get_origin(tp) is typing.Annotated:
        return typing.get_args(tp)[0]
    return tp


def _find_param(tp) -> typing.Union[Param, None]:
    if typing.get_origin(tp) is not typing.Annotated:
        return None
    for meta in tp.__metadata__:
        if isinstance(meta, Param):
            return meta
    return None


def _is_collection(tp) -> bool:
    origin = typing.get_origin(tp) or tp
    return (
        isinstance(origin, type)
        and issubclass(origin, Iterable)
        and not issubclass(origin, (str, bytes, bytearray))
    )


def parse_method(api_type: type, func: Callable) -> MethodMetadata:
    key = MethodKey.for_method(api_type, func)
    line = getattr(func, _LINE_ATTR, None)
    if line is None:
        raise ConfigurationError(f"{key}: missing @request_line")
    try:
        hints = typing.get_type_hints(func, include_extras=True)
    except NameError as e:
        raise ConfigurationError(f"{key}: cannot resolve annotations: {e}") from e

    try:
        template = RequestTemplate.from_request_line(line)
    except ConfigurationError as e:
        raise ConfigurationError(f"{key}: {e}", method_key=str(key)) from e
    # class-level headers first so method-level values replace them
    for header_line in getattr(api_type, _HEADERS_ATTR, ()) + getattr(func, _HEADERS_ATTR, ()):
        name, value = _split_header(key, header_line)
        template.header(name, value)
    if getattr(func, _BODY_ATTR, None) is not None:
        template.set_body_template(getattr(func, _BODY_ATTR))

    signature = inspect.signature(func)
    bindings: list[ParamBinding] = []
    body_index, body_type = None, None
    for i, p in enumerate(list(signature.parameters.values())[1:]):
        if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
            raise ConfigurationError(f"{key}: *args/**kwargs are not supported")
        annotation = hints.get(p.name, Any)
        param = _find_param(annotation)
        if param is not None:
            bindings.append(ParamBinding(i, param, _strip_annotated(annotation)))
        elif body_index is not None:
            raise ConfigurationError(f"{key}: method has too many body parameters")
        else:
            body_index, body_type = i, _strip_annotated(annotation)

    bound = {b.name for b in bindings}
    for name in template.placeholders():
        if name not in bound:
            raise ConfigurationError(
                f"{key}: unresolved placeholder '{name}'; no parameter is bound to it",
                method_key=str(key),
            )
    path_names = set(placeholders(template.url))
    for b in bindings:
        if b.name in path_names and _is_collection(b.declared_type):
            raise ConfigurationError(
                f"{key}: path placeholder '{b.name}' cannot be bound to a collection",
                method_key=str(key),
            )

    referenced = set(template.placeholders())
    form_params = tuple(dict.fromkeys(b.name for b in bindings if b.name not in referenced))
    if form_params and body_index is not None:
        raise ConfigurationError(f"{key}: body parameters cannot be used with form parameters")
    if form_params and template.body_template is not None:
        raise ConfigurationError(
            f"{key}: parameter '{form_params[0]}' is not referenced by the body template"
        )

    return_type = hints.get("return", Any)
    return MethodMetadata(
        key=key,
        template=template,
        return_type=None if return_type is type(None) else _strip_annotated(return_type),
        bindings=tuple(bindings),
        body_index=body_index,
        body_type=body_type,
        form_params=form_params,
        signature=signature,
        func=func,
    )


def parse_contract(api_type: type) -> list[MethodMetadata]:
    """MethodMetadata for every @request_line method of ``api_type`` (inherited included)."""
    return [
        parse_method(api_type, func)
        for _, func in inspect.getmembers(api_type, inspect.isfunction)
        if getattr(func, _LINE_ATTR, None) is not None
    ]

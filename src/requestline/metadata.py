import inspect
import typing
from dataclasses import dataclass, field
from typing import Any, Callable, Union

from .template import RequestTemplate


def _type_name(tp) -> str:
    """Erased display name of a type: list[str] -> 'list', Annotated[int, ...] -> 'int'."""
    if tp is inspect.Parameter.empty or tp is Any:
        return "Any"
    if typing.get_origin(tp) is typing.Annotated:
        tp = typing.get_args(tp)[0]
    origin = typing.get_origin(tp) or tp
    name = getattr(origin, "__name__", None) or getattr(origin, "_name", None)
    return name or repr(origin).replace("typing.", "")


@dataclass(frozen=True)
class MethodKey:
    """Stable identifier of an API method, used for configuration lookup and diagnostics."""

    owner: str
    name: str
    param_types: tuple[str, ...] = ()
    module: str = ""

    def __str__(self) -> str:
        return f"{self.owner}#{self.name}({','.join(self.param_types)})"

    @classmethod
    def for_method(cls, api_type: type, func: Callable) -> "MethodKey":
        try:
            hints = typing.get_type_hints(func, include_extras=True)
        except (NameError, TypeError):
            hints = {}
        params = list(inspect.signature(func).parameters.values())[1:]
        return cls(
            owner=api_type.__qualname__,
            name=func.__name__,
            param_types=tuple(_type_name(hints.get(p.name, p.annotation)) for p in params),
            module=api_type.__module__,
        )


@dataclass(frozen=True)
class Param:
    """Bind an argument to a named placeholder: ``Annotated[str, Param("id")]``.

    ``expander`` converts the value to its string form; either a callable or an object
    with an ``expand(value) -> str`` method.
    """

    name: str
    expander: Union[Callable[[Any], str], None] = None

    def expand(self, value) -> str:
        if self.expander is None:
            return str(value)
        if hasattr(self.expander, "expand"):
            return self.expander.expand(value)
        return self.expander(value)


@dataclass(frozen=True)
class ParamBinding:
    index: int
    param: Param
    declared_type: Any = Any

    @property
    def name(self) -> str:
        return self.param.name


@dataclass
class MethodMetadata:
    key: MethodKey
    template: RequestTemplate
    return_type: Any = Any
    bindings: tuple[ParamBinding, ...] = ()
    body_index: Union[int, None] = None
    body_type: Any = None
    form_params: tuple[str, ...] = ()
    signature: Union[inspect.Signature, None] = None
    func: Union[Callable, None] = field(default=None, repr=False)

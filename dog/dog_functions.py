"""
The function registry.

Every function name maps to an ordered list of overloads, each accepting an
argument-count range. Registering an overload evicts any existing overload of
the same name whose range intersects the new one. Host (Python) overloads can
never be shadowed by script overloads; the reverse is allowed.
"""

import functools
import inspect
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from dog.dog_datatypes import (
    Block, FormalParameter, Function, NoMatchingOverload, OverloadRejected,
    UnknownFunction, Value,
)

UNBOUNDED = math.inf

HostCallback = Callable[["FunctionRegistry", List[Value]], Value]


@dataclass
class Overload:
    """One concrete parameter-count variant of a named function."""
    formal_parameters: List[FormalParameter]
    body: Union[Block, HostCallback]
    source_text: Optional[str] = None
    min_args: int = field(init=False)
    max_args: Union[int, float] = field(init=False)

    def __post_init__(self):
        count = len(self.formal_parameters)
        if any(p.is_variadic for p in self.formal_parameters):
            self.min_args, self.max_args = count - 1, UNBOUNDED
        else:
            self.min_args, self.max_args = count, count

    @property
    def is_host(self) -> bool:
        return not isinstance(self.body, Block)

    def accepts(self, count: int) -> bool:
        return self.min_args <= count <= self.max_args

    def collides(self, other: "Overload") -> bool:
        return self.min_args <= other.max_args and self.max_args >= other.min_args

    def arity(self) -> str:
        if self.max_args == UNBOUNDED:
            return f"{self.min_args}+"
        return f"{self.min_args}-{self.max_args}"

    def signature(self, name: str) -> str:
        params = ", ".join(("%" if p.is_variadic else "") + p.name for p in self.formal_parameters)
        return f"fn {name}({params})"


def parse_parameters(params: Iterable[str]) -> List[FormalParameter]:
    """Builds formal parameters from names; a leading `%` marks the variadic one."""
    return [FormalParameter(p.lstrip("%"), p.startswith("%")) for p in params]


def add_overload(name: str, existing: List[Overload], new: Overload) -> List[Overload]:
    """Returns the overload list for `name` after registering `new`."""
    if not new.is_host and any(o.is_host for o in existing):
        raise OverloadRejected(name)
    return [o for o in existing if not o.collides(new)] + [new]


class FunctionRegistry:
    def __init__(self):
        self.functions: Dict[str, List[Overload]] = {}

    def __contains__(self, name: str) -> bool:
        return name in self.functions

    def names(self) -> List[str]:
        return sorted(self.functions)

    def overloads(self, name: str) -> List[Overload]:
        return list(self.functions.get(name, []))

    def register(self, name: str, overload: Overload) -> str:
        current = self.functions.get(name)
        self.functions[name] = add_overload(name, current or [], overload)
        if current is None:
            return f"Registered function `{name}` ({overload.arity()} args)"
        return f"Registered overload for `{name}` ({overload.arity()} args)"

    def add_host(self, name: str, params: Iterable[str], callback: HostCallback) -> str:
        return self.register(name, Overload(parse_parameters(params), callback))

    def add_script(self, function: Function) -> str:
        source = function.source_text
        if source is None:
            from dog.dog_printer import Printer
            source = Printer().pformat(function)
        overload = Overload(list(function.formal_parameters), function.body, source)
        return self.register(function.name, overload)

    def add_scripts(self, functions: Iterable[Function]) -> List[str]:
        """Registers every function, or none of them if one is rejected."""
        # Overload lists are replaced on registration, never mutated, so a
        # shallow copy is enough to restore the previous state.
        saved = dict(self.functions)
        try:
            return [self.add_script(f) for f in functions]
        except OverloadRejected:
            self.functions = saved
            raise

    def merge(self, other: "FunctionRegistry") -> str:
        """Registers every overload of `other`; the first rejection is raised."""
        count = 0
        for name, overloads in other.functions.items():
            for overload in overloads:
                self.register(name, overload)
                count += 1
        return f"Registered {count} functions"

    def resolve(self, name: str, count: int) -> Overload:
        overloads = self.functions.get(name)
        if not overloads:
            raise UnknownFunction(name)
        for overload in overloads:
            if overload.accepts(count):
                return overload
        raise NoMatchingOverload(name, count)

    def listing(self, include_host: bool = True, include_script: bool = True,
                name: Optional[str] = None) -> str:
        """Source text of script overloads and signatures of host overloads."""
        entries = []
        for fn_name in self.names():
            if name is not None and fn_name != name:
                continue
            for overload in self.functions[fn_name]:
                if overload.is_host:
                    if include_host:
                        entries.append(f"{overload.signature(fn_name)} {{\n    // built-in\n}}")
                elif include_script:
                    entries.append(overload.source_text or overload.signature(fn_name))
        return "\n".join(entries)


# =================================================================
# Host libraries
# =================================================================

def host_function(*params: str, name: Optional[str] = None):
    """
    Marks a method as a host function taking `params` (`%name` is variadic).

    Stack the decorator to register several overloads of the same method. The
    script-visible name defaults to the method name without its leading
    underscore.
    """
    def decorator(func):
        signatures = list(getattr(func, "_dog_signatures", []))
        signatures.append((name, list(params)))
        func._dog_signatures = signatures
        return func
    return decorator


def _host_callback(method, wants_registry: bool) -> HostCallback:
    if wants_registry:
        @functools.wraps(method)
        def callback(registry, args):
            return method(*args, registry=registry)
    else:
        @functools.wraps(method)
        def callback(registry, args):
            return method(*args)
    return callback


def build_library(host: Any) -> FunctionRegistry:
    """Collects every `@host_function` method of `host` into a new registry."""
    library = FunctionRegistry()
    for attr, member in inspect.getmembers(host):
        signatures = getattr(member, "_dog_signatures", None)
        if not signatures or not callable(member):
            continue
        wants_registry = "registry" in inspect.signature(member).parameters
        default_name = attr[1:] if attr.startswith("_") else attr
        callback = _host_callback(member, wants_registry)
        for alias, params in signatures:
            library.add_host(alias or default_name, params, callback)
    return library

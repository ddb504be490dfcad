"""
Variable scopes.

A `ScopeStack` is one global map shared for the lifetime of a runtime plus a
deque of block-local maps, innermost first. Assignment is declare-or-mutate:
the nearest visible binding is updated in place, and a new binding is only
created (in the innermost frame) when the name is not visible anywhere.
"""

from collections import deque
from contextlib import contextmanager
from typing import Deque, Dict, Iterator, Optional

from dog.dog_datatypes import Value

Scope = Dict[str, Value]


class ScopeStack:
    def __init__(self, global_scope: Optional[Scope] = None):
        self.global_scope: Scope = global_scope if global_scope is not None else {}
        self.frames: Deque[Scope] = deque()

    def sibling(self) -> "ScopeStack":
        """A call frame: shares the global map but none of the caller's locals."""
        return ScopeStack(self.global_scope)

    @property
    def depth(self) -> int:
        return len(self.frames)

    def push(self):
        self.frames.appendleft({})

    def pop(self):
        if not self.frames:
            raise IndexError("pop from an empty scope stack")
        self.frames.popleft()

    @contextmanager
    def scoped(self) -> Iterator["ScopeStack"]:
        """Pushes a frame for the duration of the block, popping it on every exit path."""
        self.push()
        try:
            yield self
        finally:
            self.pop()

    def _owner(self, name: str) -> Optional[Scope]:
        for frame in self.frames:
            if name in frame:
                return frame
        if name in self.global_scope:
            return self.global_scope
        return None

    def get(self, name: str) -> Optional[Value]:
        owner = self._owner(name)
        if owner is None:
            return None
        return owner[name]

    def __contains__(self, name: str) -> bool:
        return self._owner(name) is not None

    def set(self, name: str, value: Value):
        owner = self._owner(name)
        if owner is None:
            owner = self.frames[0] if self.frames else self.global_scope
        owner[name] = value

    def declare(self, name: str, value: Value):
        """Binds `name` in the innermost frame, shadowing any outer binding."""
        frame = self.frames[0] if self.frames else self.global_scope
        frame[name] = value

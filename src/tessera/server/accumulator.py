# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#               github.com/dedalus-labs/tessera-python/LICENSE
# ==============================================================================

"""Ordered, fold-composed configuration stages.

A :class:`StageAccumulator` collects ``T -> T`` transformers for one subsystem
builder (logging, services, middleware) and applies them in declaration order
when finalized.  Accumulators are immutable: every ``append*`` returns a new
value, so a host builder can be branched without sharing state.

Conditional stages are tagged entries.  Their predicate runs at finalize time
against the builder value produced by all earlier stages; a false predicate
passes that value through untouched.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from functools import reduce
from typing import Generic, TypeVar


T = TypeVar("T")

Stage = Callable[[T], T]
Predicate = Callable[[T], bool]


def _stage_name(stage: Callable[..., object]) -> str:
    return getattr(stage, "__qualname__", None) or getattr(stage, "__name__", None) or repr(stage)


@dataclass(frozen=True, slots=True)
class Unconditional(Generic[T]):
    name: str
    stage: Stage[T]

    def apply(self, target: T) -> T:
        return self.stage(target)


@dataclass(frozen=True, slots=True)
class Conditional(Generic[T]):
    name: str
    predicate: Predicate[T]
    stage: Stage[T]
    negate: bool = False

    def apply(self, target: T) -> T:
        if bool(self.predicate(target)) != self.negate:
            return self.stage(target)
        return target


StageEntry = Unconditional[T] | Conditional[T]


@dataclass(frozen=True, slots=True)
class StageAccumulator(Generic[T]):
    """Persistent ordered collection of stages for one subsystem builder.

    Finalizing is meant to happen once; reusing a finalized accumulator is a
    caller error and is not checked.
    """

    entries: tuple[StageEntry[T], ...] = ()

    @classmethod
    def empty(cls) -> StageAccumulator[T]:
        return cls()

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(entry.name for entry in self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def append(self, stage: Stage[T], *, name: str | None = None) -> StageAccumulator[T]:
        entry = Unconditional(name or _stage_name(stage), stage)
        return StageAccumulator(self.entries + (entry,))

    def append_if(self, predicate: Predicate[T], stage: Stage[T], *, name: str | None = None) -> StageAccumulator[T]:
        entry = Conditional(name or _stage_name(stage), predicate, stage)
        return StageAccumulator(self.entries + (entry,))

    def append_if_not(
        self, predicate: Predicate[T], stage: Stage[T], *, name: str | None = None
    ) -> StageAccumulator[T]:
        entry = Conditional(name or _stage_name(stage), predicate, stage, negate=True)
        return StageAccumulator(self.entries + (entry,))

    def compose(self) -> Stage[T]:
        """Fold every entry into one transformer, first declared applied first."""
        entries = self.entries

        def _composed(initial: T) -> T:
            return reduce(lambda value, entry: entry.apply(value), entries, initial)

        return _composed

    def finalize(self, initial: T) -> T:
        return self.compose()(initial)


__all__ = ["Conditional", "Predicate", "Stage", "StageAccumulator", "StageEntry", "Unconditional"]

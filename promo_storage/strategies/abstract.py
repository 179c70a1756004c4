"""
Abstract persistence interfaces and result contracts for the promotions service.

A persistence strategy accepts a stream of decoded promotions and durably
applies it under one consistency policy. Concrete strategies (upsert,
replace-all) implement the PersistenceStrategy protocol and return an
ApplyResult TypedDict so the orchestrator can report uniformly.
"""

from __future__ import annotations

import abc
from typing import Iterable, Optional, Protocol, TypedDict, runtime_checkable

from promo_storage.domain.models import Promotion


class ApplyResult(TypedDict, total=False):
    """
    Outcome of applying one file's record stream.

    `error` is set only for a batch fault (the whole apply was rejected or the
    stream aborted), with `error_type` naming the exception class; per-record
    failures are counted in `failed`.
    """

    applied: int
    failed: int
    error: Optional[str]
    error_type: Optional[str]
    notes: Optional[str]


class StreamAborted(RuntimeError):
    """The producer side of a record stream failed before reaching the end."""


@runtime_checkable
class PromotionStore(Protocol):
    """Write side of the store consumed by the strategies."""

    def upsert(self, promotion: Promotion) -> None:
        ...

    def replace_all(self, promotions: Iterable[Promotion]) -> int:
        ...


@runtime_checkable
class PersistenceStrategy(Protocol):
    """
    Common interface all persistence strategies implement.

    Attributes
    ----------
    name : str
        Machine-friendly identifier, matching the configured storage mode.
    description : str
        A human-friendly summary of the policy.
    """

    name: str
    description: str

    def apply(self, promotions: Iterable[Promotion]) -> ApplyResult:
        """
        Drain `promotions` and persist them.

        Blocks until the iterable is exhausted and its records are applied,
        or until the batch is rejected.
        """
        ...


class AbstractPersistenceStrategy(abc.ABC):
    """
    ABC helper for class-based implementations.

    Subclasses set `name` and `description` and implement `apply`.
    """

    name: str
    description: str

    def __init__(self, store: PromotionStore) -> None:
        self.store = store

    @abc.abstractmethod
    def apply(self, promotions: Iterable[Promotion]) -> ApplyResult:  # pragma: no cover - interface only
        """Persist the stream and return the outcome."""
        raise NotImplementedError


__all__ = [
    "AbstractPersistenceStrategy",
    "ApplyResult",
    "PersistenceStrategy",
    "PromotionStore",
    "StreamAborted",
]

"""Generic repository interface (Dependency Inversion Principle).

Provides ``IRepository[T]``, the base abstract class that all
domain-specific repository interfaces extend.  Service-layer code
depends on this abstraction, never on Django ORM directly.

Repositories do not open transactions of their own: the caller decides
which sequence of calls forms one unit of work.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Iterator, Optional, Protocol, TypeVar

from django.db import models

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class Queryable(Protocol[T_co]):
    """Lazy, filterable, iterable collection (a Django ``QuerySet``)."""

    def filter(self, **kwargs: Any) -> models.QuerySet: ...

    def __iter__(self) -> Iterator[T_co]: ...


class IRepository(ABC, Generic[T]):
    """Base generic repository contract.

    Type parameter ``T`` represents the aggregate root managed by the
    repository (e.g. ``Order``).
    """

    @abstractmethod
    def get_by_id(self, id: Any) -> Optional[T]:
        """Retrieve an entity by its primary key, ``None`` if absent."""

    @abstractmethod
    def list(self, filters: Optional[Dict[str, Any]] = None) -> Queryable[T]:
        """List entities with optional filters."""

    @abstractmethod
    def delete(self, entity: T) -> None:
        """Physically remove an entity."""

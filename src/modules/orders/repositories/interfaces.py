"""Order repository interface.

Extends ``IRepository[Order]`` with the operations the Order aggregate
needs: creation together with items and initial history, optimistic
versioned updates, status history, and the read queries and statistics
used by the service layer.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from modules.core.repositories.interfaces import IRepository, Queryable

if TYPE_CHECKING:
    from modules.orders.models import Order, OrderStatusHistory


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    The Order aggregate includes OrderItem children and
    OrderStatusHistory records.  Writes that must be atomic are wrapped by
    the caller's unit of work.
    """

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @abstractmethod
    def create(self, order: Order, actor: str) -> Order:
        """Persist a new order, its buffered items and its initial history."""

    @abstractmethod
    def update(self, order: Order, fields: Iterable[str], actor: str) -> Order:
        """Write *fields* of *order* if its version is still current.

        Raises:
            OrderError: ``ORDER_NOT_FOUND`` if the row is gone,
                ``CONCURRENT_MODIFICATION`` if the version moved on.
        """

    @abstractmethod
    def add_history(
        self,
        order: Order,
        old_status: Optional[str],
        new_status: str,
        actor: str,
        notes: str = "",
    ) -> OrderStatusHistory:
        """Record a status change in the order's audit trail."""

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @abstractmethod
    def find_by_client(self, client_id: int) -> Queryable[Order]: ...

    @abstractmethod
    def find_by_status(self, status: str) -> Queryable[Order]: ...

    @abstractmethod
    def find_by_date_range(self, start: datetime, end: datetime) -> Queryable[Order]: ...

    @abstractmethod
    def find_by_product(self, product_id: int) -> Queryable[Order]: ...

    @abstractmethod
    def find_created_since(self, since: datetime) -> Queryable[Order]: ...

    @abstractmethod
    def find_stale(self, before: datetime, statuses: Iterable[str]) -> Queryable[Order]:
        """Orders in *statuses* created at or before *before*, oldest first."""

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    @abstractmethod
    def client_totals(self, client_id: int) -> Dict[str, Any]:
        """``{"count", "amount", "has_active"}`` for one client."""

    @abstractmethod
    def global_totals(self) -> Dict[str, Any]:
        """``{"count", "amount", "by_status"}`` over every order."""

    @abstractmethod
    def daily_totals(self, start: datetime, end: datetime) -> List[Dict[str, Any]]:
        """``[{"day", "count", "amount"}]`` per calendar day, oldest first."""

    @abstractmethod
    def top_clients(self, limit: int) -> List[Dict[str, Any]]:
        """``[{"client_id", "count", "amount"}]`` by descending order count."""

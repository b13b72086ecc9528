"""Integration tests for OrderDjangoRepository.

Covers:
- Create: order, items and initial history persisted together.
- Compare-and-swap writes: stale copies are rejected, vanished rows are reported.
- Read performance: get_by_id loads relations without N+1 queries.
- Query helpers and aggregate statistics.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from django.utils import timezone

from modules.orders.constants import OrderStatus
from modules.orders.dtos import OrderOutputDTO
from modules.orders.exceptions import ErrorKind, OrderError
from modules.orders.models import Order, OrderItem, OrderStatusHistory
from modules.orders.repositories.django_repository import OrderDjangoRepository

pytestmark = pytest.mark.integration


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def repo():
    return OrderDjangoRepository()


def _new_order(client_id=1, lines=((10, "10.00", 2), (11, "25.50", 1))) -> Order:
    order = Order(client_id=client_id)
    for product_id, price, quantity in lines:
        order.add_item(
            OrderItem(
                product_id=product_id,
                product_name=f"Product {product_id}",
                unit_price=Decimal(price),
                quantity=quantity,
            )
        )
    return order


@pytest.fixture()
def stored(repo):
    return repo.create(_new_order(), actor="clerk")


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class TestCreate:
    def test_persists_aggregate(self, repo, stored):
        order = Order.objects.get(pk=stored.pk)

        assert order.total_amount == Decimal("45.50")
        assert order.status == OrderStatus.PENDING
        assert order.version == 0
        assert order.items.count() == 2
        assert order.created_by == "clerk"

    def test_line_totals_computed(self, stored):
        totals = sorted(item.line_total for item in OrderItem.objects.filter(order=stored))
        assert totals == [Decimal("20.00"), Decimal("25.50")]

    def test_initial_history_row(self, stored):
        (history,) = OrderStatusHistory.objects.filter(order=stored)

        assert history.old_status is None
        assert history.new_status == OrderStatus.PENDING
        assert history.actor == "clerk"
        assert history.notes == "Order created"

    def test_forces_pending_and_version_zero(self, repo):
        order = _new_order()
        order.status = OrderStatus.SHIPPED
        order.version = 7

        repo.create(order, actor="x")

        stored = Order.objects.get(pk=order.pk)
        assert stored.status == OrderStatus.PENDING
        assert stored.version == 0


# ---------------------------------------------------------------------------
# Update / delete
# ---------------------------------------------------------------------------


class TestCompareAndSwap:
    def test_update_bumps_version(self, repo, stored):
        order = repo.get_by_id(stored.pk)
        order.comment = "ring twice"

        repo.update(order, ["comment"], actor="editor")

        fresh = Order.objects.get(pk=stored.pk)
        assert fresh.comment == "ring twice"
        assert fresh.version == order.version == 1
        assert fresh.updated_by == "editor"

    def test_stale_copy_rejected(self, repo, stored):
        first = repo.get_by_id(stored.pk)
        second = repo.get_by_id(stored.pk)

        first.comment = "first"
        repo.update(first, ["comment"], actor="a")

        second.comment = "second"
        with pytest.raises(OrderError) as exc_info:
            repo.update(second, ["comment"], actor="b")

        assert exc_info.value.kind is ErrorKind.CONCURRENT_MODIFICATION
        assert exc_info.value.details.expected_version == 0
        assert Order.objects.get(pk=stored.pk).comment == "first"

    def test_update_of_deleted_row(self, repo, stored):
        order = repo.get_by_id(stored.pk)
        Order.objects.filter(pk=stored.pk).delete()

        with pytest.raises(OrderError) as exc_info:
            repo.update(order, ["comment"], actor="x")

        assert exc_info.value.kind is ErrorKind.ORDER_NOT_FOUND

    def test_delete_cascades(self, repo, stored):
        repo.delete(repo.get_by_id(stored.pk))

        assert Order.objects.count() == 0
        assert OrderItem.objects.count() == 0
        assert OrderStatusHistory.objects.count() == 0

    def test_delete_with_stale_copy(self, repo, stored):
        stale = repo.get_by_id(stored.pk)
        Order.objects.filter(pk=stored.pk).update(version=1)

        with pytest.raises(OrderError) as exc_info:
            repo.delete(stale)

        assert exc_info.value.kind is ErrorKind.CONCURRENT_MODIFICATION
        assert Order.objects.filter(pk=stored.pk).exists()

    def test_history_visible_after_append(self, repo, stored):
        order = repo.get_by_id(stored.pk)
        assert order.status_history.count() == 1

        repo.add_history(order, OrderStatus.PENDING, OrderStatus.CONFIRMED, "x")

        assert [h.new_status for h in order.status_history.all()] == ["PENDING", "CONFIRMED"]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    @pytest.mark.parametrize("order_id", ["nope", 12345, uuid4()])
    def test_get_by_id_missing(self, repo, order_id):
        assert repo.get_by_id(order_id) is None

    def test_get_by_id_has_no_n_plus_one(self, repo, stored, django_assert_num_queries):
        # order, items, history
        with django_assert_num_queries(3):
            order = repo.get_by_id(stored.pk)
            OrderOutputDTO.from_entity(order)

    def test_list_by_product_returns_each_order_once(self, repo):
        order = repo.create(_new_order(lines=((10, "1.00", 1), (11, "1.00", 1))), actor="x")

        found = list(repo.list({"items__product_id__in": [10, 11]}))

        assert [o.pk for o in found] == [order.pk]

    def test_find_helpers(self, repo, stored):
        other = repo.create(_new_order(client_id=2, lines=((12, "3.00", 1),)), actor="x")

        assert [o.pk for o in repo.find_by_client(2)] == [other.pk]
        assert [o.pk for o in repo.find_by_product(10)] == [stored.pk]
        assert repo.find_by_status(OrderStatus.CANCELLED).count() == 0
        assert repo.find_created_since(timezone.now() - timedelta(hours=1)).count() == 2

    def test_find_stale_oldest_first(self, repo):
        now = timezone.now()
        newer = repo.create(_new_order(), actor="x")
        older = repo.create(_new_order(), actor="x")
        fresh = repo.create(_new_order(), actor="x")
        Order.objects.filter(pk=newer.pk).update(created_at=now - timedelta(days=4))
        Order.objects.filter(pk=older.pk).update(created_at=now - timedelta(days=6))

        found = repo.find_stale(now - timedelta(days=3), [OrderStatus.PENDING])

        assert [o.pk for o in found] == [older.pk, newer.pk]
        assert fresh.pk not in {o.pk for o in found}


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


class TestStatistics:
    def test_client_totals(self, repo, stored):
        totals = repo.client_totals(1)

        assert totals == {"count": 1, "amount": Decimal("45.50"), "has_active": True}

    def test_client_totals_empty(self, repo):
        assert repo.client_totals(99) == {
            "count": 0,
            "amount": Decimal("0.00"),
            "has_active": False,
        }

    def test_global_totals_lists_every_status(self, repo, stored):
        totals = repo.global_totals()

        assert totals["count"] == 1
        assert set(totals["by_status"]) == set(OrderStatus.values)
        assert totals["by_status"][OrderStatus.PENDING] == 1

    def test_daily_totals_group_by_day(self, repo):
        now = timezone.now()
        yesterday = repo.create(_new_order(lines=((10, "5.00", 1),)), actor="x")
        repo.create(_new_order(lines=((10, "7.00", 1),)), actor="x")
        repo.create(_new_order(lines=((10, "8.00", 1),)), actor="x")
        Order.objects.filter(pk=yesterday.pk).update(created_at=now - timedelta(days=1))

        rows = repo.daily_totals(now - timedelta(days=2), now + timedelta(minutes=1))

        assert [(row["count"], row["amount"]) for row in rows] == [
            (1, Decimal("5.00")),
            (2, Decimal("15.00")),
        ]
        assert rows[0]["day"] < rows[1]["day"]

    def test_top_clients_ties_broken_by_id(self, repo):
        for client_id in (5, 3, 5, 3, 9):
            repo.create(_new_order(client_id=client_id, lines=((10, "1.00", 1),)), actor="x")

        rows = repo.top_clients(2)

        assert [(row["client_id"], row["count"]) for row in rows] == [(3, 2), (5, 2)]

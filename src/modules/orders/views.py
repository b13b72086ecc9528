"""Order API views.

Exposes the ``OrderService`` via HTTP using a DRF ViewSet.
Order errors propagate to ``modules.core.exceptions.api_exception_handler``,
which maps their category to 400, 404 or 409.
"""

from __future__ import annotations

from django.conf import settings
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.filters import OrderingFilter
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.throttling import BaseThrottle
from rest_framework.viewsets import GenericViewSet

from modules.core.pagination import StandardResultsSetPagination
from modules.orders.dtos import CreateOrderDTO
from modules.orders.filters import OrderFilter
from modules.orders.models import Order
from modules.orders.serializers import (
    CancelOrderSerializer,
    ClientStatsQuerySerializer,
    CreateOrderSerializer,
    DateRangeSerializer,
    TopClientsQuerySerializer,
    UpdateCommentSerializer,
    UpdateStatusSerializer,
)
from modules.orders.services import build_order_service


def request_actor(request: Request) -> str:
    """The authenticated username, or the system identity."""
    user = getattr(request, "user", None)
    if user is not None and user.is_authenticated:
        return user.get_username()
    return settings.SYSTEM_ACTOR


class OrderViewSet(GenericViewSet):
    """ViewSet for Order operations.

    Does **not** extend ``ModelViewSet``: all ORM access goes through
    the service/repository layer.
    """

    queryset = Order.objects.all()
    filterset_class = OrderFilter
    ordering_fields = ["created_at", "status", "client_id", "total_amount"]
    ordering = ["-created_at", "-id"]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    pagination_class = StandardResultsSetPagination

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = build_order_service()

    def get_throttles(self) -> list[BaseThrottle]:
        """Per-action throttling scopes."""
        throttle_scope: str | None
        if self.action == "create":
            throttle_scope = "order_creation"
        elif self.action in {"list", "retrieve"}:
            throttle_scope = "order_listing"
        else:
            throttle_scope = None
        self.throttle_scope = throttle_scope
        return super().get_throttles()

    def get_queryset(self):
        return self._service.query_orders()

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create(self, request: Request) -> Response:
        """POST /api/v1/orders/"""
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        dto = CreateOrderDTO.model_validate(serializer.validated_data)
        order = self._service.create_order(dto, actor=request_actor(request))
        return Response(order.model_dump(mode="json"), status=status.HTTP_201_CREATED)

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/orders/

        Filtering is handled by ``OrderFilter`` and ordering by
        ``OrderingFilter``.  Each page is enriched with remote data.
        """
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        orders = self._service.present(page)
        return self.get_paginated_response([o.model_dump(mode="json") for o in orders])

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/orders/{pk}/"""
        order = self._service.get_order(pk)
        return Response(order.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Status / comment / cancel / delete
    # ------------------------------------------------------------------

    def partial_update(self, request: Request, pk: str | None = None) -> Response:
        """PATCH /api/v1/orders/{pk}/ ``{status, version?, notes?}``"""
        serializer = UpdateStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = self._service.update_status(
            pk,
            data["status"],
            actor=request_actor(request),
            expected_version=data.get("version"),
            notes=data["notes"],
        )
        return Response(order.model_dump(mode="json"))

    @action(detail=True, methods=["put"])
    def comment(self, request: Request, pk: str | None = None) -> Response:
        """PUT /api/v1/orders/{pk}/comment/"""
        serializer = UpdateCommentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = self._service.update_comment(
            pk,
            data["comment"],
            actor=request_actor(request),
            expected_version=data.get("version"),
        )
        return Response(order.model_dump(mode="json"))

    @action(detail=True, methods=["post"])
    def cancel(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/orders/{pk}/cancel/"""
        serializer = CancelOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = self._service.cancel_order(
            pk,
            actor=request_actor(request),
            notes=serializer.validated_data["notes"],
        )
        return Response(order.model_dump(mode="json"))

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/orders/{pk}/"""
        self._service.delete_order(pk, actor=request_actor(request))
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Predicates
    # ------------------------------------------------------------------

    @action(detail=True, methods=["get"], url_path="can-modify")
    def can_modify(self, request: Request, pk: str | None = None) -> Response:
        return Response({"can_modify": self._service.can_be_modified(pk)})

    @action(detail=True, methods=["get"], url_path="can-cancel")
    def can_cancel(self, request: Request, pk: str | None = None) -> Response:
        return Response({"can_cancel": self._service.can_be_cancelled(pk)})

    # ------------------------------------------------------------------
    # Statistics & supplementary reads
    # ------------------------------------------------------------------

    @action(detail=False, methods=["get"])
    def stats(self, request: Request) -> Response:
        """GET /api/v1/orders/stats/?client=<id>"""
        query = ClientStatsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        client_id = query.validated_data.get("client")
        if client_id is not None:
            result = self._service.client_statistics(client_id)
        else:
            result = self._service.global_statistics()
        return Response(result.model_dump(mode="json"))

    @action(detail=False, methods=["get"], url_path="stats/daily")
    def daily_stats(self, request: Request) -> Response:
        """GET /api/v1/orders/stats/daily/?start_date=&end_date="""
        query = DateRangeSerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        rows = self._service.daily_statistics(
            query.validated_data["start_date"], query.validated_data["end_date"]
        )
        return Response([row.model_dump(mode="json") for row in rows])

    @action(detail=False, methods=["get"])
    def recent(self, request: Request) -> Response:
        orders = self._service.find_recent_orders()
        return Response([o.model_dump(mode="json") for o in orders])

    @action(detail=False, methods=["get"])
    def attention(self, request: Request) -> Response:
        orders = self._service.find_orders_needing_attention()
        return Response([o.model_dump(mode="json") for o in orders])

    @action(detail=False, methods=["get"], url_path="top-clients")
    def top_clients(self, request: Request) -> Response:
        query = TopClientsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        rows = self._service.top_clients(query.validated_data["limit"])
        return Response([row.model_dump(mode="json") for row in rows])

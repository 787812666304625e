"""Order API views.

``CheckoutOrderView`` is the public, payment-verified creation endpoint.
``OrderAdminViewSet`` exposes the owner's management operations and is
guarded by ``IsOwner``.

Domain exceptions are caught and translated into appropriate HTTP status
codes; the views never swallow generic exceptions.
"""

from __future__ import annotations

from django.conf import settings
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import status
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import AllowAny
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework.viewsets import GenericViewSet

from modules.orders.dtos import (
    AddNoteDTO,
    CreateRefundDTO,
    CreateShipmentDTO,
    OrderOutputDTO,
    OrderPatchDTO,
    OrderSummaryDTO,
    OwnerNoteOutputDTO,
    RefundOutputDTO,
    ShipmentOutputDTO,
)
from modules.orders.exceptions import (
    DuplicateTransaction,
    InvalidCheckoutPayload,
    InvalidOrderStatus,
    MissingRequiredFields,
    MissingShippingFields,
    OrderNotFound,
    PaymentDataMissing,
    PersistenceFailure,
    RefundExceedsBalance,
)
from modules.orders.factory import OrderFactory
from modules.orders.filters import OrderFilter
from modules.orders.idempotency import IdempotencyIndex
from modules.orders.models import Order
from modules.orders.notifications import CeleryOrderNotifier
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.serializers import (
    AddNoteSerializer,
    CreateRefundSerializer,
    CreateShipmentSerializer,
    OrderPatchSerializer,
)
from modules.orders.services import OrderCreationService, OrderMutationService
from modules.orders.timeline import EventTimeline


def _failure(error: str, http_status: int, **extra) -> Response:
    return Response({"success": False, "error": error, **extra}, status=http_status)


class CheckoutOrderView(APIView):
    """POST /api/v1/checkout/orders/

    Called by the checkout after the payment provider confirmed the
    charge.  Public and throttled; one transaction id produces at most
    one order.
    """

    authentication_classes: list = []
    permission_classes = [AllowAny]
    throttle_scope = "order_creation"

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderCreationService(
            order_repository=OrderDjangoRepository(),
            idempotency=IdempotencyIndex(),
            factory=OrderFactory(currency=settings.ORDER_CURRENCY),
            notifier=CeleryOrderNotifier(),
        )

    def post(self, request: Request) -> Response:
        try:
            order = self._service.create_order(request.data)
        except MissingRequiredFields as exc:
            return _failure(
                "Missing required fields",
                status.HTTP_400_BAD_REQUEST,
                missingFields=exc.missing,
            )
        except PaymentDataMissing as exc:
            return _failure(str(exc), status.HTTP_400_BAD_REQUEST)
        except MissingShippingFields as exc:
            return _failure(
                "Missing required shipping details",
                status.HTTP_400_BAD_REQUEST,
                missingShippingFields=exc.missing,
            )
        except InvalidCheckoutPayload as exc:
            return _failure(
                "Invalid checkout payload",
                status.HTTP_400_BAD_REQUEST,
                details=exc.errors,
            )
        except DuplicateTransaction as exc:
            return _failure(
                "Order already exists for this transaction",
                status.HTTP_409_CONFLICT,
                existingOrderId=str(exc.existing_order_id),
            )
        except PersistenceFailure:
            return _failure(
                "Failed to create order", status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        return Response(
            {
                "success": True,
                "order": OrderOutputDTO.from_entity(order).to_json(),
                "orderNumber": order.order_number,
                "message": "Order created successfully",
            },
            status=status.HTTP_201_CREATED,
        )


class OrderAdminViewSet(GenericViewSet):
    """Owner management of orders.

    Does **not** extend ``ModelViewSet``; all ORM access goes through the
    service/repository layer.  Unknown ids and unauthorized callers both
    get the same plain 404.
    """

    queryset = Order.objects.all()
    throttle_scope = "order_listing"

    filterset_class = OrderFilter
    filter_backends = [DjangoFilterBackend]

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._service = OrderMutationService(
            order_repository=OrderDjangoRepository(),
            timeline=EventTimeline(),
        )

    def get_queryset(self):
        return self._service.list_orders()

    # ------------------------------------------------------------------
    # List / Retrieve
    # ------------------------------------------------------------------

    def list(self, request: Request) -> Response:
        """GET /api/v1/admin/orders/

        Filtering, search and sorting are handled by ``OrderFilter``.
        Results are paginated (``page``/``limit``).
        """
        queryset = self.filter_queryset(self.get_queryset())
        page = self.paginate_queryset(queryset)
        rows = [
            OrderSummaryDTO.from_entity(order).model_dump(mode="json", by_alias=True)
            for order in page
        ]
        return self.get_paginated_response(rows)

    def retrieve(self, request: Request, pk: str | None = None) -> Response:
        """GET /api/v1/admin/orders/{pk}/"""
        try:
            order = self._service.get_order(pk)
        except OrderNotFound:
            raise NotFound()
        return Response(OrderOutputDTO.from_entity(order).to_json())

    # ------------------------------------------------------------------
    # Update / Cancel
    # ------------------------------------------------------------------

    def update(self, request: Request, pk: str | None = None) -> Response:
        """PUT|PATCH /api/v1/admin/orders/{pk}/

        Only allow-listed fields may be sent; anything else is a 400.
        """
        serializer = OrderPatchSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        dto = OrderPatchDTO.model_validate(serializer.validated_data)

        try:
            order = self._service.patch(pk, dto)
        except OrderNotFound:
            raise NotFound()
        except InvalidOrderStatus as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        return Response(OrderOutputDTO.from_entity(order).to_json())

    partial_update = update

    def destroy(self, request: Request, pk: str | None = None) -> Response:
        """DELETE /api/v1/admin/orders/{pk}/

        Soft cancel; the order is kept for audit.
        """
        try:
            order = self._service.cancel(pk)
        except OrderNotFound:
            raise NotFound()
        except InvalidOrderStatus as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        return Response({"message": f"Order {order.order_number} cancelled."})

    # ------------------------------------------------------------------
    # Append operations
    # ------------------------------------------------------------------

    @action(detail=True, methods=["post"])
    def notes(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/admin/orders/{pk}/notes/"""
        serializer = AddNoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order, note = self._service.add_note(
                pk, AddNoteDTO.model_validate(serializer.validated_data)
            )
        except OrderNotFound:
            raise NotFound()
        return Response(
            {
                "order": OrderOutputDTO.from_entity(order).to_json(),
                "note": OwnerNoteOutputDTO.from_entity(note).model_dump(
                    mode="json", by_alias=True
                ),
            },
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["post"])
    def shipments(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/admin/orders/{pk}/shipments/"""
        serializer = CreateShipmentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order, shipment = self._service.add_shipment(
                pk, CreateShipmentDTO.model_validate(serializer.validated_data)
            )
        except OrderNotFound:
            raise NotFound()
        except InvalidOrderStatus as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        return Response(
            {
                "order": OrderOutputDTO.from_entity(order).to_json(),
                "shipment": ShipmentOutputDTO.from_entity(shipment).model_dump(
                    mode="json", by_alias=True
                ),
            },
            status=status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["post"])
    def refunds(self, request: Request, pk: str | None = None) -> Response:
        """POST /api/v1/admin/orders/{pk}/refunds/"""
        serializer = CreateRefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            order, refund = self._service.add_refund(
                pk, CreateRefundDTO.model_validate(serializer.validated_data)
            )
        except OrderNotFound:
            raise NotFound()
        except InvalidOrderStatus as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_409_CONFLICT)
        except RefundExceedsBalance as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(
            {
                "order": OrderOutputDTO.from_entity(order).to_json(),
                "refund": RefundOutputDTO.from_entity(refund).model_dump(
                    mode="json", by_alias=True
                ),
            },
            status=status.HTTP_201_CREATED,
        )

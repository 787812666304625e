"""Order URL configuration."""

from __future__ import annotations

from django.urls import path
from rest_framework.routers import DefaultRouter

from modules.orders.views import CheckoutOrderView, OrderAdminViewSet

router = DefaultRouter(trailing_slash=True)
router.register("admin/orders", OrderAdminViewSet, basename="admin-order")

urlpatterns = [
    path("checkout/orders/", CheckoutOrderView.as_view(), name="checkout-order"),
    *router.urls,
]

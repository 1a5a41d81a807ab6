"""URL routing for the sponsorship pool."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import AdminReservationViewSet, AvailabilityView, CartView, ClaimViewSet, ReservationViewSet

router = DefaultRouter()
router.register(r"claims", ClaimViewSet, basename="claim")
router.register(r"reservations", ReservationViewSet, basename="reservation")
router.register(r"admin/reservations", AdminReservationViewSet, basename="admin-reservation")

urlpatterns = [
    path("children/availability/", AvailabilityView.as_view(), name="child-availability"),
    path("children/cart/", CartView.as_view(), name="child-cart"),
    path("", include(router.urls)),
]

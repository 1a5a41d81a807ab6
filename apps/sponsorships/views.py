"""API views for the sponsorship pool."""

from __future__ import annotations

from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.pagination import LimitOffsetPagination  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from .domain.cart import SelectionCart
from .domain.errors import Conflict, Forbidden, NotFound, TransientStoreError, ValidationFailed
from .filters import ClaimFilterSet, ReservationFilterSet
from .models import Claim
from .serializers import (
    BatchClaimRequestSerializer,
    CancelClaimSerializer,
    CartItemSerializer,
    ChildIdsSerializer,
    ChildSerializer,
    ClaimRequestSerializer,
    ClaimSerializer,
    ReceiptSerializer,
    ReservationRequestSerializer,
    ReservationSerializer,
    ReservationViewSerializer,
)
from .services.engine import Actor, RequestOrigin, engine
from .services.queries import children_needing_attention, claims_for_sponsor, reservations_for_admin

ERROR_STATUS = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (Conflict, status.HTTP_409_CONFLICT),
    (ValidationFailed, status.HTTP_400_BAD_REQUEST),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (TransientStoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def error_response(error) -> Response:  # type: ignore
    code = next(
        (http_status for error_type, http_status in ERROR_STATUS if isinstance(error, error_type)),
        status.HTTP_400_BAD_REQUEST,
    )
    return Response(error.to_dict(), status=code)


def outcome_response(outcome, render, status_code=status.HTTP_200_OK) -> Response:  # type: ignore
    if not outcome.ok:
        return error_response(outcome.error)
    return Response(render(outcome.value), status=status_code)


def request_origin(request) -> RequestOrigin:  # type: ignore
    return RequestOrigin(
        ip_address=request.META.get("REMOTE_ADDR"),
        user_agent=request.META.get("HTTP_USER_AGENT", ""),
    )


class AvailabilityView(APIView):
    """Fast pre-check: which of the given children cannot be taken right now."""

    permission_classes = [permissions.AllowAny]

    def post(self, request):  # type: ignore
        serializer = ChildIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = engine.check_availability(serializer.validated_data["child_ids"])
        if not outcome.ok:
            return error_response(outcome.error)
        unavailable = outcome.value
        return Response(
            {
                "available": not unavailable,
                "unavailable": [
                    {"child_id": item.child_id, "display_id": item.display_id, "status": item.status}
                    for item in unavailable
                ],
            }
        )


class CartView(APIView):
    """The sponsor's selection, kept in the session until a reservation is placed."""

    permission_classes = [permissions.AllowAny]

    def _render(self, cart: SelectionCart) -> Response:
        return Response({"child_ids": list(cart.child_ids), "count": len(cart)})

    def get(self, request):  # type: ignore
        return self._render(SelectionCart.from_session(request.session))

    def post(self, request):  # type: ignore
        serializer = CartItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        cart = SelectionCart.from_session(request.session).add(serializer.validated_data["child_id"])
        cart.to_session(request.session)
        return self._render(cart)

    def delete(self, request):  # type: ignore
        cart = SelectionCart.from_session(request.session)
        child_id = request.query_params.get("child_id")
        if child_id:
            try:
                cart = cart.remove(int(child_id))
            except ValueError:
                return Response({"detail": "child_id must be an integer."}, status=status.HTTP_400_BAD_REQUEST)
        else:
            cart = cart.clear()
        cart.to_session(request.session)
        return self._render(cart)


class ClaimViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """Single-child claims. Anyone may place one; administrators move them on."""

    queryset = Claim.objects.select_related("child__family").all()
    serializer_class = ClaimSerializer
    filterset_class = ClaimFilterSet
    permission_classes = [permissions.IsAdminUser]

    def get_permissions(self):  # type: ignore
        if self.action in ("create", "batch"):
            return [permissions.AllowAny()]
        return super().get_permissions()

    def get_queryset(self):  # type: ignore
        email = self.request.query_params.get("email") if self.request else None
        if email:
            return claims_for_sponsor(email)
        return super().get_queryset()

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = ClaimRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = engine.create_claim(
            serializer.validated_data["child_id"],
            serializer.validated_data["sponsor"],
        )
        return outcome_response(
            outcome,
            lambda claim: ClaimSerializer(claim).data,
            status.HTTP_201_CREATED,
        )

    @action(detail=False, methods=["post"])
    def batch(self, request):  # type: ignore
        serializer = BatchClaimRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = engine.add_children_to_claims(
            serializer.validated_data["child_ids"],
            serializer.validated_data["sponsor"],
        )
        return outcome_response(
            outcome,
            lambda result: {
                "added": result.added,
                "errors": result.errors,
                "claims": ClaimSerializer(result.claims, many=True).data,
            },
            status.HTTP_201_CREATED,
        )

    @action(detail=True, methods=["post"])
    def confirm(self, request, pk=None):  # type: ignore
        return outcome_response(engine.confirm_claim(self._claim_id(pk)), lambda c: ClaimSerializer(c).data)

    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):  # type: ignore
        return outcome_response(engine.complete_claim(self._claim_id(pk)), lambda c: ClaimSerializer(c).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        serializer = CancelClaimSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        outcome = engine.cancel_claim(self._claim_id(pk), serializer.validated_data["reason"])
        return outcome_response(outcome, lambda c: ClaimSerializer(c).data)

    @action(detail=False, methods=["get"])
    def attention(self, request):  # type: ignore
        hours = request.query_params.get("older_than_hours")
        try:
            older_than = float(hours) if hours else None
        except ValueError:
            return Response(
                {"detail": "older_than_hours must be a number."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        children = children_needing_attention(older_than)
        return Response(ChildSerializer(children, many=True).data)

    def _claim_id(self, pk) -> int:  # type: ignore
        try:
            return int(pk)
        except (TypeError, ValueError):
            return 0


class ReservationViewSet(viewsets.ViewSet):
    """Token-addressed reservations. The token in the URL is the only credential."""

    permission_classes = [permissions.AllowAny]
    lookup_field = "token"
    lookup_value_regex = "[0-9a-f]{64}"

    def create(self, request):  # type: ignore
        serializer = ReservationRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        from_session = "child_ids" not in data
        cart = SelectionCart.from_session(request.session) if from_session else data["child_ids"]
        outcome = engine.create_reservation(
            data["sponsor"],
            cart,
            data.get("ttl_hours"),
            origin=request_origin(request),
        )
        if outcome.ok and from_session:
            SelectionCart().to_session(request.session)
        return outcome_response(
            outcome,
            lambda receipt: ReceiptSerializer(receipt).data,
            status.HTTP_201_CREATED,
        )

    def retrieve(self, request, token=None):  # type: ignore
        return outcome_response(
            engine.get_reservation(token),
            lambda view: ReservationViewSerializer(view).data,
        )

    @action(detail=True, methods=["post"])
    def confirm(self, request, token=None):  # type: ignore
        return outcome_response(
            engine.confirm_reservation(token),
            lambda reservation: ReservationSerializer(reservation).data,
        )

    @action(detail=True, methods=["post"])
    def cancel(self, request, token=None):  # type: ignore
        return outcome_response(
            engine.cancel_reservation(token, actor=Actor.SPONSOR),
            lambda reservation: ReservationSerializer(reservation).data,
        )


class ReservationListPagination(LimitOffsetPagination):
    default_limit = 50
    max_limit = 500


class AdminReservationViewSet(mixins.ListModelMixin, viewsets.GenericViewSet):
    """Administrative reservation listing; tokens are never exposed here."""

    serializer_class = ReservationSerializer
    filterset_class = ReservationFilterSet
    pagination_class = ReservationListPagination
    permission_classes = [permissions.IsAdminUser]

    def get_queryset(self):  # type: ignore
        return reservations_for_admin()

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        reservation = self.get_object()
        return outcome_response(
            engine.cancel_reservation(reservation.token, actor=Actor.ADMIN),
            lambda cancelled: ReservationSerializer(cancelled).data,
        )

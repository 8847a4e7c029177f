from rest_framework import status
from rest_framework.permissions import AllowAny, IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.accounts.authentication import OptionalStorageJWTAuthentication
from apps.storage import get_storage

from .serializers import (
    CartAddSerializer,
    CartItemSerializer,
    CartSerializer,
    CartUpdateSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    PickupSlotQuerySerializer,
    PickupSlotSerializer,
    PlaceOrderSerializer,
)
from .services import CartService, OrderService

SESSION_HEADER = "X-Session-Id"


def _cart_owner(request):
    user = request.user if request.user.is_authenticated else None
    return user, request.headers.get(SESSION_HEADER, "").strip()


class PickupSlotListView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request):
        query = PickupSlotQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        slots = get_storage().get_pickup_slots(query.validated_data.get("date"))
        return Response(PickupSlotSerializer(slots, many=True).data)


class OrderListCreateView(APIView):
    """
    GET: the caller's own orders, newest first.
    POST: checkout, for signed-in customers and guests alike.
    """
    authentication_classes = [OptionalStorageJWTAuthentication]

    def get_permissions(self):
        if self.request.method == "POST":
            return [AllowAny()]
        return [IsAuthenticated()]

    def get(self, request):
        orders = get_storage().get_orders(user_id=request.user.id)
        return Response(OrderSerializer(orders, many=True).data)

    def post(self, request):
        serializer = PlaceOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = request.user if request.user.is_authenticated else None
        order = OrderService.place_order(get_storage(), user=user, **serializer.validated_data)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class OrderDetailView(APIView):
    """
    Public by order id: the confirmation page is reachable without an account.
    """
    permission_classes = [AllowAny]
    authentication_classes = []

    def get(self, request, order_id):
        order = OrderService.get_order(get_storage(), order_id)
        return Response(OrderSerializer(order).data)


class ResendConfirmationView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, order_id):
        email = OrderService.resend_confirmation(get_storage(), order_id, request.user)
        return Response({"message": f"Confirmation sent to {email}"})


class OrderStatusView(APIView):
    permission_classes = [IsAdminUser]

    def patch(self, request, order_id):
        serializer = OrderStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService.update_status(get_storage(), order_id, serializer.validated_data["status"])
        return Response(OrderSerializer(order).data)


class CartView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = [OptionalStorageJWTAuthentication]

    def get(self, request):
        user, session_id = _cart_owner(request)
        cart = CartService.summary(get_storage(), user, session_id)
        return Response(CartSerializer(cart).data)

    def post(self, request):
        serializer = CartAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user, session_id = _cart_owner(request)
        item = CartService.add_item(
            get_storage(),
            serializer.validated_data["product_id"],
            serializer.validated_data["quantity"],
            user=user,
            session_id=session_id,
        )
        return Response(CartItemSerializer(item).data, status=status.HTTP_201_CREATED)


class CartItemView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = [OptionalStorageJWTAuthentication]

    def patch(self, request, item_id):
        serializer = CartUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user, session_id = _cart_owner(request)
        item = CartService.update_item(
            get_storage(),
            item_id,
            serializer.validated_data["quantity"],
            user=user,
            session_id=session_id,
        )
        return Response(CartItemSerializer(item).data)

    def delete(self, request, item_id):
        user, session_id = _cart_owner(request)
        CartService.remove_item(get_storage(), item_id, user=user, session_id=session_id)
        return Response(status=status.HTTP_204_NO_CONTENT)

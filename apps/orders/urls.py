from django.urls import path
from .views import (
    CartItemView,
    CartView,
    OrderDetailView,
    OrderListCreateView,
    OrderStatusView,
    PickupSlotListView,
    ResendConfirmationView,
)

urlpatterns = [
    path('pickup-slots', PickupSlotListView.as_view(), name='pickup-slot-list'),
    path('cart', CartView.as_view(), name='cart'),
    path('cart/items/<str:item_id>', CartItemView.as_view(), name='cart-item'),
    path('orders', OrderListCreateView.as_view(), name='order-list'),
    path('orders/<str:order_id>', OrderDetailView.as_view(), name='order-detail'),
    path('orders/<str:order_id>/resend-confirmation', ResendConfirmationView.as_view(), name='order-resend-confirmation'),
    path('orders/<str:order_id>/status', OrderStatusView.as_view(), name='order-status'),
]

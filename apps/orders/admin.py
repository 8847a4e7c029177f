from django.contrib import admin
from .models import Order, OrderItem, CartItem, PickupSlot


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ('product', 'product_name', 'product_price', 'quantity', 'subtotal')

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        'order_number',
        'customer_name',
        'customer_phone',
        'pickup_slot',
        'status',
        'amount',
        'expires_at',
        'created_at',
    )
    list_filter = ('status', 'created_at')
    search_fields = ('order_number', 'customer_name', 'customer_phone', 'customer_email')
    readonly_fields = (
        'order_number', 'amount', 'currency', 'temp_pickup_code',
        'final_pickup_code', 'expires_at', 'created_at',
    )
    raw_id_fields = ('user',)
    inlines = [OrderItemInline]


@admin.register(PickupSlot)
class PickupSlotAdmin(admin.ModelAdmin):
    list_display = ('date', 'time_from', 'time_to', 'capacity', 'remaining', 'is_active')
    list_filter = ('is_active', 'date')
    ordering = ('date', 'time_from')


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ('product', 'quantity', 'user', 'session_id', 'created_at')
    raw_id_fields = ('user', 'product')

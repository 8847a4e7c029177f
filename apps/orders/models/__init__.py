"""
Top-level models import shim for the Orders app.

Lets `from apps.orders.models import Order` work while the models
live in separate modules.
"""

from .slot import *           # PickupSlot
from .order import *          # Order, OrderStatus
from .item import *           # OrderItem
from .cart import *           # CartItem

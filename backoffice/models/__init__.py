from .auth import User
from .customers import Customer
from .settings import Settings
from .catalog import Product
from .inventory import InventoryTransaction
from .orders import Order, OrderItem, Payment, DocumentSequence

__all__ = [
    'User', 'Customer', 'Settings',
    'Product', 'InventoryTransaction',
    'Order', 'OrderItem', 'Payment', 'DocumentSequence',
]

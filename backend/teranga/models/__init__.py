from .auth import User, SessionToken
from .catalog import Product
from .orders import Order, OrderItem
from .finance import Transaction

__all__ = [
    'User', 'SessionToken',
    'Product',
    'Order', 'OrderItem',
    'Transaction',
]

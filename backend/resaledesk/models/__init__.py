from .purchases import Purchase
from .payments import Payment
from .coupons import Coupon

__all__ = [
    'Purchase',
    'Payment',
    'Coupon',
]

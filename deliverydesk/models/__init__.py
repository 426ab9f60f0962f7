from .base import Base
from .user import User
from .shopify_connection import ShopifyConnection
from .order import Order, OrderStatus
from .notification import Notification
from .delivery import (
    ProofOfDelivery,
    PodPhoto,
    DeliveryFailure,
    OrderUpdate,
)

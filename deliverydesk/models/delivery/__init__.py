from .proof import ProofOfDelivery
from .photo import PodPhoto
from .failure import DeliveryFailure
from .order_update import OrderUpdate

__all__ = [
    "ProofOfDelivery",
    "PodPhoto",
    "DeliveryFailure",
    "OrderUpdate",
]

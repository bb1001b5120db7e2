from .delivery_scheduler import DeliveryScheduler
from .subscription_session import SubscriptionSession

__all__ = ["DeliveryScheduler", "SubscriptionSession"]

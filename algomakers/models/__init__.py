# algomakers/models/__init__.py
from .user_model import User
from .subscription_model import Subscription
from .pair_model import Pair
from .payment_model import Payment, PaymentItem
from .webhook_event_model import ProcessedWebhookEvent
from .audit_model import AuditLog
from .notification_model import Notification

__all__ = [
    "User", "Subscription", "Pair", "Payment", "PaymentItem",
    "ProcessedWebhookEvent", "AuditLog", "Notification",
]

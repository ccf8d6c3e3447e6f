from sqlmodel import Session, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from fastapi import HTTPException, status
from typing import Callable, Dict, List, Optional
import logging

from algomakers.core.cache import revalidate_dashboard
from algomakers.crud.notification_crud import NotificationCRUD
from algomakers.crud.payment_crud import PaymentCRUD
from algomakers.external_services.email_service import EmailClient
from algomakers.models.notification_model import NotificationType, NotificationPriority
from algomakers.models.pair_model import Pair
from algomakers.models.payment_model import Payment, PaymentStatus
from algomakers.models.subscription_model import Subscription
from algomakers.models.user_model import User
from algomakers.models.webhook_event_model import ProcessedWebhookEvent
from algomakers.schemas.payment_schema import NowPaymentsWebhook

logger = logging.getLogger(__name__)


class WebhookCRUD:
    """Applies NOWPayments IPN callbacks to local payments and subscriptions."""

    def __init__(self, session: Session, email_client: Optional[EmailClient] = None):
        self.session = session
        self.payments = PaymentCRUD(session)
        self.notifications = NotificationCRUD(session)
        self.email_client = email_client

    def _handlers(self) -> Dict[str, Callable[[Payment, NowPaymentsWebhook], bool]]:
        return {
            "finished": self.handle_payment_success,
            "confirmed": self.handle_payment_confirmed,
            "expired": self.handle_payment_expired,
            "failed": self.handle_payment_failed,
            "partially_paid": self.handle_partial_payment,
        }

    def is_processed(self, event_key: str) -> bool:
        return self.session.exec(
            select(ProcessedWebhookEvent).where(ProcessedWebhookEvent.event_key == event_key)
        ).first() is not None

    def process(self, webhook: NowPaymentsWebhook) -> dict:
        if not webhook.order_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing order_id"
            )

        handler = self._handlers().get(webhook.payment_status.lower())
        if handler is None:
            logger.info(f"Unhandled payment status {webhook.payment_status} for order {webhook.order_id}")
            return {"success": True, "handled": False}

        event_key = webhook.event_key
        if self.is_processed(event_key):
            logger.info(f"Webhook {event_key} already processed, skipping")
            return {"success": True, "duplicate": True}

        payment = self.payments.get_payment_by_order_id(webhook.order_id)
        if not payment:
            logger.warning(f"No payment record found for order: {webhook.order_id}")
            return {"success": True, "matched": False}

        payment_id = payment.id
        user_id = payment.user_id
        try:
            send_confirmation = handler(payment, webhook)
            self.session.add(ProcessedWebhookEvent(
                event_key=event_key,
                order_id=webhook.order_id,
                payment_status=webhook.payment_status,
            ))
            self.session.commit()
        except IntegrityError:
            # A concurrent delivery of the same event committed first
            self.session.rollback()
            logger.info(f"Webhook {event_key} processed concurrently, skipping")
            return {"success": True, "duplicate": True}
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Database error processing webhook {event_key}: {str(e)}")
            raise

        revalidate_dashboard(user_id)
        if send_confirmation:
            self._send_confirmation_email(payment_id, webhook)

        payment = self.session.get(Payment, payment_id)
        return {"success": True, "status": payment.status.value}

    def handle_payment_success(self, payment: Payment, webhook: NowPaymentsWebhook) -> bool:
        logger.info(f"Payment successful: {webhook.payment_id} (order {webhook.order_id})")
        already_paid = payment.status == PaymentStatus.PAID
        activated = self.payments.apply_status(
            payment,
            PaymentStatus.PAID,
            source="webhook",
            tx_hash=webhook.payin_hash or webhook.payment_id,
            actually_paid=webhook.paid_amount,
            gateway_payment_id=webhook.payment_id,
        )
        # confirmed and finished both arrive for one payment; notify once
        if already_paid:
            logger.info(f"Order {webhook.order_id} already paid, skipping notifications")
            return False

        amount = webhook.paid_amount
        currency = (webhook.pay_currency or "usdt").upper()
        self.notifications.notify_admins(
            title="Payment received",
            message=f"Order {webhook.order_id} paid {amount} {currency}, {len(activated)} subscription(s) activated.",
            target_id=payment.id,
            data={"order_id": webhook.order_id, "payment_id": webhook.payment_id, "amount": amount, "currency": currency},
        )
        self.notifications.notify_user(
            payment.user_id,
            NotificationType.PAYMENT_RECEIVED,
            title="Payment Received",
            message=f"Your payment of {amount} {currency} ({payment.network.value}) has been received. Transaction: {payment.tx_hash}",
            target_id=payment.id,
            data={"order_id": webhook.order_id, "amount": amount, "network": payment.network.value},
        )
        self._notify_activated(payment, activated)
        return True

    def handle_payment_confirmed(self, payment: Payment, webhook: NowPaymentsWebhook) -> bool:
        logger.info(f"Payment confirmed: {webhook.payment_id} (order {webhook.order_id})")
        return self.handle_payment_success(payment, webhook)

    def handle_payment_expired(self, payment: Payment, webhook: NowPaymentsWebhook) -> bool:
        logger.info(f"Payment expired: {webhook.payment_id} (order {webhook.order_id})")
        self.payments.apply_status(
            payment,
            PaymentStatus.EXPIRED,
            source="webhook",
            gateway_payment_id=webhook.payment_id,
        )
        self.notifications.notify_admins(
            title="Payment expired",
            message=f"Order {webhook.order_id} expired before payment.",
            priority=NotificationPriority.LOW,
            target_id=payment.id,
            data={"order_id": webhook.order_id, "payment_id": webhook.payment_id},
        )
        self.notifications.notify_user(
            payment.user_id,
            NotificationType.PAYMENT_EXPIRED,
            title="Payment Expired",
            message="Your payment window has expired. Please start a new checkout to subscribe.",
            target_id=payment.id,
            data={"order_id": webhook.order_id},
        )
        return False

    def handle_payment_failed(self, payment: Payment, webhook: NowPaymentsWebhook) -> bool:
        logger.info(f"Payment failed: {webhook.payment_id} (order {webhook.order_id})")
        self.payments.apply_status(
            payment,
            PaymentStatus.FAILED,
            source="webhook",
            gateway_payment_id=webhook.payment_id,
        )
        self.notifications.notify_admins(
            title="Payment failed",
            message=f"Payment for order {webhook.order_id} failed.",
            priority=NotificationPriority.HIGH,
            target_id=payment.id,
            data={"order_id": webhook.order_id, "payment_id": webhook.payment_id},
        )
        self.notifications.notify_user(
            payment.user_id,
            NotificationType.PAYMENT_FAILED,
            title="Payment Failed",
            message="Your payment could not be completed. No subscription was activated.",
            priority=NotificationPriority.HIGH,
            target_id=payment.id,
            data={"order_id": webhook.order_id},
        )
        return False

    def handle_partial_payment(self, payment: Payment, webhook: NowPaymentsWebhook) -> bool:
        logger.info(f"Partial payment received: {webhook.payment_id} (order {webhook.order_id})")
        self.payments.apply_status(
            payment,
            PaymentStatus.UNDERPAID,
            source="webhook",
            actually_paid=webhook.paid_amount,
            gateway_payment_id=webhook.payment_id,
        )
        expected = webhook.price_amount if webhook.price_amount is not None else payment.total_amount
        self.notifications.notify_admins(
            title="Partial payment",
            message=f"Order {webhook.order_id} paid {webhook.paid_amount} of {expected}.",
            priority=NotificationPriority.HIGH,
            target_id=payment.id,
            data={
                "order_id": webhook.order_id,
                "payment_id": webhook.payment_id,
                "amount": webhook.paid_amount,
                "expected_amount": expected,
            },
        )
        self.notifications.notify_user(
            payment.user_id,
            NotificationType.PAYMENT_UNDERPAID,
            title="Payment Incomplete",
            message=f"We received {webhook.paid_amount} of the expected {expected}. Please pay the remaining amount to activate your subscription.",
            priority=NotificationPriority.HIGH,
            target_id=payment.id,
            data={"order_id": webhook.order_id, "amount": webhook.paid_amount, "expected_amount": expected},
        )
        return False

    def _pair_symbols(self, pair_ids: List[str]) -> Dict[str, str]:
        if not pair_ids:
            return {}
        pairs = self.session.exec(select(Pair).where(Pair.id.in_(pair_ids))).all()
        return {pair.id: pair.symbol for pair in pairs}

    def _notify_activated(self, payment: Payment, activated: List[Subscription]) -> None:
        symbols = self._pair_symbols([subscription.pair_id for subscription in activated])
        for subscription in activated:
            pair_name = symbols.get(subscription.pair_id, subscription.pair_id)
            self.notifications.notify_user(
                payment.user_id,
                NotificationType.SUBSCRIPTION_CONFIRMED,
                title="Subscription Confirmed",
                message=(
                    f"Your subscription to {pair_name} for {subscription.period.value} is now active. "
                    f"Access starts on {subscription.start_date:%Y-%m-%d} and expires on {subscription.expiry_date:%Y-%m-%d}."
                ),
                priority=NotificationPriority.HIGH,
                target_id=subscription.id,
                data={"pair": pair_name, "period": subscription.period.value},
            )

    def _send_confirmation_email(self, payment_id: str, webhook: NowPaymentsWebhook) -> None:
        if self.email_client is None:
            return
        payment = self.session.get(Payment, payment_id)
        user = self.session.get(User, payment.user_id)
        if not user:
            logger.error(f"User {payment.user_id} not found for payment {payment_id}")
            return
        items = self.payments.get_payment_items(payment_id)
        symbols = self._pair_symbols([item.pair_id for item in items])
        sent = self.email_client.send_payment_confirmation(
            to_email=user.email,
            name=user.name,
            order_id=payment.order_id,
            amount=payment.actually_paid or payment.total_amount,
            currency=webhook.pay_currency,
            pair_symbols=list(symbols.values()),
        )
        if not sent:
            logger.warning(f"Payment confirmation email was not sent for order {payment.order_id}")

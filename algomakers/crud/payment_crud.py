from sqlmodel import Session, select
from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from fastapi import HTTPException, status
from datetime import datetime, timedelta
from typing import Optional, List, Tuple
import logging
import secrets
import string
import time

from algomakers.core.cache import (
    dashboard_version,
    get_cached_dashboard,
    set_cached_dashboard,
    revalidate_dashboard,
)
from algomakers.core.config import settings
from algomakers.crud.audit_crud import add_audit_log
from algomakers.external_services.nowpayments_service import NowPaymentsService, NowPaymentsError
from algomakers.models.audit_model import AuditAction, AuditTargetType
from algomakers.models.pair_model import Pair
from algomakers.models.payment_model import Payment, PaymentItem, PaymentStatus, PaymentNetwork
from algomakers.models.subscription_model import Subscription, SubscriptionStatus, SubscriptionPeriod
from algomakers.models.user_model import User
from algomakers.schemas.payment_schema import (
    CreateInvoiceRequest,
    InvoiceResponse,
    InvoicePaymentSummary,
    InvoicePair,
    PaymentStatusResponse,
    PaymentRead,
    PaymentDetail,
    PaymentItemRead,
    PaymentListResponse,
    PaymentStats,
    BillingResponse,
    BillingStats,
)

logger = logging.getLogger(__name__)

ORDER_ID_ALPHABET = string.ascii_lowercase + string.digits

GATEWAY_STATUS_MAP = {
    "waiting": PaymentStatus.PENDING,
    "sending": PaymentStatus.PENDING,
    "confirming": PaymentStatus.PENDING,
    "confirmed": PaymentStatus.PAID,
    "finished": PaymentStatus.PAID,
    "partially_paid": PaymentStatus.UNDERPAID,
    "failed": PaymentStatus.FAILED,
    "refunded": PaymentStatus.EXPIRED,
    "expired": PaymentStatus.EXPIRED,
}

DATE_RANGES = {"7d": 7, "30d": 30, "90d": 90}
SORTABLE_FIELDS = {"created_at", "updated_at", "total_amount", "status", "expires_at"}


def generate_order_id() -> str:
    suffix = "".join(secrets.choice(ORDER_ID_ALPHABET) for _ in range(9))
    return f"order_{int(time.time() * 1000)}_{suffix}"


def map_gateway_status(gateway_status: Optional[str]) -> PaymentStatus:
    return GATEWAY_STATUS_MAP.get((gateway_status or "waiting").lower(), PaymentStatus.PENDING)


def client_status(local_status: PaymentStatus, gateway_status: Optional[str]) -> str:
    """Status string reported to the checkout poller: pending, confirming, confirmed, expired or failed."""
    if local_status == PaymentStatus.PAID:
        return "confirmed"
    if local_status == PaymentStatus.EXPIRED:
        return "expired"
    if local_status == PaymentStatus.FAILED:
        return "failed"
    if (gateway_status or "").lower() == "confirming":
        return "confirming"
    return "pending"


class PaymentCRUD:
    def __init__(self, session: Session):
        self.session = session

    def get_payment(self, payment_id: str) -> Payment:
        payment = self.session.get(Payment, payment_id)
        if not payment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Payment not found"
            )
        return payment

    def get_payment_by_order_id(self, order_id: str) -> Optional[Payment]:
        return self.session.exec(
            select(Payment).where(Payment.order_id == order_id)
        ).first()

    def get_payment_by_invoice_id(self, invoice_id: str) -> Optional[Payment]:
        return self.session.exec(
            select(Payment).where(Payment.invoice_id == invoice_id)
        ).first()

    def get_payment_items(self, payment_id: str) -> List[PaymentItem]:
        return list(self.session.exec(
            select(PaymentItem).where(PaymentItem.payment_id == payment_id)
        ))

    def get_payment_detail(self, payment: Payment) -> PaymentDetail:
        detail = PaymentDetail.model_validate(payment, from_attributes=True)
        detail.items = [
            PaymentItemRead.model_validate(item, from_attributes=True)
            for item in self.get_payment_items(payment.id)
        ]
        return detail

    # Invoice creation

    def _resolve_pairs(self, pair_ids: List[str]) -> List[Pair]:
        pairs: List[Pair] = []
        seen = set()
        for identifier in pair_ids:
            pair = self.session.exec(
                select(Pair).where(or_(Pair.id == identifier, Pair.symbol == identifier))
            ).first()
            if not pair:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Pair not found: {identifier}"
                )
            if not pair.is_active:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Pair is not available for purchase: {pair.symbol}"
                )
            if pair.id not in seen:
                seen.add(pair.id)
                pairs.append(pair)
        return pairs

    def _price_items(
        self,
        request: CreateInvoiceRequest,
        pairs: List[Pair],
        period: SubscriptionPeriod,
    ) -> List[Tuple[Pair, SubscriptionPeriod, float, float, float]]:
        overrides = {item.pair_id: item for item in request.order_data.payment_items or []}
        fallback_price = request.amount / len(pairs)

        priced = []
        for pair in pairs:
            override = overrides.get(pair.id) or overrides.get(pair.symbol)
            if override:
                item_period = override.period or period
                base_price, discount_rate = override.base_price, override.discount_rate
            else:
                item_period = period
                base_price, discount_rate = pair.price_for(period)
                if not base_price:
                    base_price = fallback_price
            final_price = round(base_price * (1 - discount_rate / 100), 2)
            priced.append((pair, item_period, base_price, discount_rate, final_price))
        return priced

    def create_invoice(
        self,
        user: User,
        request: CreateInvoiceRequest,
        gateway: NowPaymentsService,
    ) -> InvoiceResponse:
        """Stage the order, open a gateway invoice, and commit both or neither."""
        pair_ids = request.resolved_pair_ids()
        if not pair_ids:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Missing pair_ids"
            )

        # NOWPayments rejects small USDT amounts
        if request.amount < settings.PAYMENT_MIN_AMOUNT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Minimum amount is ${settings.PAYMENT_MIN_AMOUNT:g} USD for cryptocurrency payments"
            )

        if not gateway.is_configured:
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="NOWPayments API key not configured"
            )

        pairs = self._resolve_pairs(pair_ids)
        period = request.resolved_period()
        priced = self._price_items(request, pairs, period)

        order_id = generate_order_id()
        now = datetime.utcnow()
        expires_at = now + timedelta(minutes=settings.INVOICE_EXPIRY_MINUTES)

        try:
            for pair, item_period, base_price, discount_rate, _ in priced:
                self.session.add(Subscription(
                    user_id=user.id,
                    pair_id=pair.id,
                    period=item_period,
                    start_date=now,
                    expiry_date=item_period.expiry_from(now),
                    status=SubscriptionStatus.PENDING,
                    base_price=base_price,
                    discount_rate=discount_rate,
                ))

            order_data = request.order_data.model_dump(mode="json", exclude_none=True)
            order_data["pair_ids"] = [pair.id for pair in pairs]
            payment = Payment(
                user_id=user.id,
                total_amount=request.amount,
                network=PaymentNetwork.from_network(request.network),
                status=PaymentStatus.PENDING,
                order_id=order_id,
                expires_at=expires_at,
                order_data=order_data,
            )
            self.session.add(payment)

            items = []
            for pair, item_period, base_price, discount_rate, final_price in priced:
                item = PaymentItem(
                    payment_id=payment.id,
                    pair_id=pair.id,
                    period=item_period,
                    base_price=base_price,
                    discount_rate=discount_rate,
                    final_price=final_price,
                )
                self.session.add(item)
                items.append((pair, item))
            self.session.flush()

            description = (
                f"AlgoMakers.Ai Subscription: {', '.join(pair.symbol for pair in pairs)}"
                f" - {period.value}"
            )
            invoice = gateway.create_invoice(
                amount=request.amount,
                network=request.network,
                order_id=order_id,
                description=description,
            )

            payment.invoice_id = invoice["invoice_id"]
            payment.invoice_url = invoice["invoice_url"]
            payment.pay_currency = invoice["pay_currency"]
            self.session.add(payment)

            add_audit_log(
                self.session,
                AuditAction.CREATE_PAYMENT,
                target_id=payment.id,
                target_type=AuditTargetType.PAYMENT,
                actor_id=user.id,
                details={
                    "order_id": order_id,
                    "invoice_id": invoice["invoice_id"],
                    "amount": request.amount,
                    "pairs": [pair.symbol for pair in pairs],
                },
            )

            response = InvoiceResponse(
                id=invoice["invoice_id"],
                order_id=order_id,
                amount=request.amount,
                currency=invoice["pay_currency"],
                network=request.network,
                expires_at=expires_at,
                invoice_url=invoice["invoice_url"],
                payment=InvoicePaymentSummary(
                    id=payment.id,
                    pairs=[
                        InvoicePair(
                            pair_id=pair.id,
                            symbol=pair.symbol,
                            period=item.period,
                            base_price=item.base_price,
                            discount_rate=item.discount_rate,
                            final_price=item.final_price,
                        )
                        for pair, item in items
                    ],
                ),
            )
            self.session.commit()
        except NowPaymentsError as e:
            self.session.rollback()
            logger.error(f"Error creating NOWPayments invoice for order {order_id}: {str(e)}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail=f"Failed to create invoice: {str(e)}"
            )
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"Database error creating order {order_id}: {str(e)}")
            raise

        revalidate_dashboard(user.id)
        logger.info(f"Created payment {response.payment.id} for user {user.id}, order {order_id}, invoice {response.id}")
        return response

    # Status transitions

    def _activate_subscriptions(self, payment: Payment) -> List[Subscription]:
        """Activate the owner's PENDING subscriptions for the pairs bought in this payment."""
        pair_ids = [item.pair_id for item in self.get_payment_items(payment.id)]
        if not pair_ids:
            return []

        subscriptions = list(self.session.exec(
            select(Subscription).where(
                Subscription.user_id == payment.user_id,
                Subscription.pair_id.in_(pair_ids),
                Subscription.status == SubscriptionStatus.PENDING,
            )
        ))
        now = datetime.utcnow()
        for subscription in subscriptions:
            subscription.status = SubscriptionStatus.ACTIVE
            subscription.payment_id = payment.id
            subscription.start_date = now
            subscription.expiry_date = subscription.period.expiry_from(now)
            subscription.updated_at = now
            self.session.add(subscription)
        return subscriptions

    def apply_status(
        self,
        payment: Payment,
        new_status: PaymentStatus,
        source: str,
        tx_hash: Optional[str] = None,
        actually_paid: Optional[float] = None,
        gateway_payment_id: Optional[str] = None,
    ) -> List[Subscription]:
        """Stage a status transition and its subscription cascade; the caller commits.

        Only a PAID transition touches subscriptions. Returns the activated ones.
        """
        previous_status = payment.status
        payment.status = new_status
        if tx_hash:
            payment.tx_hash = tx_hash
        if actually_paid is not None:
            payment.actually_paid = actually_paid
        if gateway_payment_id:
            payment.payment_id = gateway_payment_id
        payment.updated_at = datetime.utcnow()
        self.session.add(payment)

        activated: List[Subscription] = []
        if new_status == PaymentStatus.PAID:
            activated = self._activate_subscriptions(payment)

        add_audit_log(
            self.session,
            AuditAction.PROCESS_PAYMENT,
            target_id=payment.id,
            target_type=AuditTargetType.PAYMENT,
            details={
                "source": source,
                "order_id": payment.order_id,
                "previous_status": previous_status.value,
                "status": new_status.value,
                "activated_subscriptions": [subscription.id for subscription in activated],
            },
        )
        logger.info(f"Payment {payment.id} ({payment.order_id}) {previous_status.value} -> {new_status.value} via {source}")
        return activated

    def reconcile_status(self, payment: Payment, gateway: NowPaymentsService) -> PaymentStatusResponse:
        """Pull the gateway's view of a payment and align local state with it."""
        invoice_id = payment.invoice_id
        result = gateway.get_payment_status(payment.payment_id or invoice_id)

        if not result["success"]:
            return PaymentStatusResponse(
                status="pending",
                invoice_id=invoice_id,
                message="Payment not yet initiated",
                updated_at=datetime.utcnow(),
            )

        new_status = map_gateway_status(result["payment_status"])
        if new_status != payment.status:
            user_id = payment.user_id
            try:
                self.apply_status(
                    payment,
                    new_status,
                    source="status_poll",
                    tx_hash=result.get("tx_hash"),
                    actually_paid=result.get("actually_paid"),
                    gateway_payment_id=result.get("payment_id"),
                )
                self.session.commit()
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error(f"Failed to update payment status for invoice {invoice_id}: {str(e)}")
                raise
            revalidate_dashboard(user_id)

        return PaymentStatusResponse(
            status=client_status(new_status, result["payment_status"]),
            invoice_id=invoice_id,
            gateway_status=result["payment_status"],
            amount=result.get("pay_amount"),
            currency=result.get("pay_currency"),
            actually_paid=result.get("actually_paid"),
            updated_at=datetime.utcnow(),
        )

    # Listings

    def list_payments(
        self,
        status_filter: Optional[str] = None,
        network: Optional[str] = None,
        user_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> PaymentListResponse:
        conditions = []
        if status_filter and status_filter != "all":
            conditions.append(Payment.status == self._parse_enum(PaymentStatus, status_filter))
        if network and network != "all":
            conditions.append(Payment.network == self._parse_enum(PaymentNetwork, network))
        if user_id:
            conditions.append(Payment.user_id == user_id)
        if search and search.strip():
            term = f"%{search.strip()}%"
            conditions.append(or_(
                Payment.order_id.ilike(term),
                Payment.invoice_id.ilike(term),
                Payment.tx_hash.ilike(term),
                Payment.user_id.in_(select(User.id).where(User.email.ilike(term))),
            ))

        sort_column = getattr(Payment, sort_by if sort_by in SORTABLE_FIELDS else "created_at")
        query = select(Payment).where(*conditions).order_by(
            sort_column.asc() if sort_order == "asc" else sort_column.desc()
        )
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)
        payments = self.session.exec(query).all()

        total_amount, total_paid, total_count = self.session.exec(
            select(
                func.coalesce(func.sum(Payment.total_amount), 0),
                func.coalesce(func.sum(Payment.actually_paid), 0),
                func.count(Payment.id),
            ).where(*conditions)
        ).one()
        breakdown = self.session.exec(
            select(Payment.status, func.count(Payment.id)).where(*conditions).group_by(Payment.status)
        ).all()

        return PaymentListResponse(
            payments=[PaymentRead.model_validate(p, from_attributes=True) for p in payments],
            total_count=total_count,
            stats=PaymentStats(
                total_amount=float(total_amount),
                total_paid=float(total_paid),
                total_payments=total_count,
                status_breakdown={row_status.value: count for row_status, count in breakdown},
            ),
        )

    def get_user_billing(
        self,
        user: User,
        status_filter: Optional[str] = None,
        date_range: Optional[str] = None,
        search: Optional[str] = None,
    ) -> BillingResponse:
        conditions = [Payment.user_id == user.id]
        if status_filter and status_filter != "all":
            conditions.append(Payment.status == self._parse_enum(PaymentStatus, status_filter))
        if date_range and date_range != "all":
            if date_range not in DATE_RANGES:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Invalid date range: {date_range}"
                )
            conditions.append(Payment.created_at >= datetime.utcnow() - timedelta(days=DATE_RANGES[date_range]))

        payments = list(self.session.exec(
            select(Payment).where(*conditions).order_by(Payment.created_at.desc())
        ))
        if search:
            term = search.lower()
            payments = [
                p for p in payments
                if any(term in (value or "").lower() for value in (p.order_id, p.invoice_id, p.tx_hash))
            ]

        return BillingResponse(
            payments=[PaymentRead.model_validate(p, from_attributes=True) for p in payments],
            stats=self.get_billing_stats(user),
        )

    def get_billing_stats(self, user: User) -> BillingStats:
        """Summary over the user's whole history, served from the dashboard cache."""
        cached = get_cached_dashboard(user.id)
        if cached is not None:
            return BillingStats(**cached)

        version = dashboard_version(user.id)
        payments = self.session.exec(select(Payment).where(Payment.user_id == user.id)).all()
        active_subscriptions = self.session.exec(
            select(func.count(Subscription.id)).where(
                Subscription.user_id == user.id,
                Subscription.status == SubscriptionStatus.ACTIVE,
            )
        ).one()
        stats = BillingStats(
            total_spent=sum(
                p.actually_paid or p.total_amount for p in payments if p.status == PaymentStatus.PAID
            ),
            total_payments=len(payments),
            active_subscriptions=active_subscriptions,
            pending_payments=len([p for p in payments if p.status == PaymentStatus.PENDING]),
        )
        set_cached_dashboard(user.id, stats.model_dump(), version)
        return stats

    @staticmethod
    def _parse_enum(enum_cls, value: str):
        try:
            return enum_cls(value.upper())
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Invalid {enum_cls.__name__}: {value}"
            )

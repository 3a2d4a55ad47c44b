from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from flask import current_app

from flowpay.constants import OrderStatus, FinancialStatus, FulfillmentStatus
from flowpay.errors import OrderNotFoundError
from flowpay.extensions import db
from flowpay.models import Customer, Order, OrderItem, PendingPayment, Store
from flowpay.services.snapshot import OrderSnapshot
from flowpay.services.transition_guard import TransitionGuard
from flowpay.utils import to_decimal, utcnow

DEFAULT_ORDER_COUNTER = 1000

@dataclass
class FallbackResult:
    order: Order
    created: bool
    snapshot: Optional[OrderSnapshot] = None

class FallbackOrderBuilder:
    """
    사전 생성된 주문 없이 PendingPayment 만 있는 경우 스냅샷으로 주문을 생성.
    PendingPayment 선점(pending -> completed), 주문번호 할당, 주문 저장을 한 트랜잭션에서 처리한다.
    """

    @staticmethod
    def next_order_number(store_id):
        # [중요] 스토어 행 잠금 후 카운터 증가 (동시 생성 시 번호 중복 방지)
        store = db.session.query(Store).filter_by(id=store_id).with_for_update().populate_existing().one()
        number = store.order_counter or DEFAULT_ORDER_COUNTER
        store.order_counter = number + 1
        return str(number)

    @staticmethod
    def resolve_customer(store_id, pending, snapshot):
        if pending.customer_id:
            customer = Customer.query.filter_by(id=pending.customer_id, store_id=store_id).first()
            if customer:
                return customer

        email = (snapshot.customer.email or '').strip().lower()
        if not email:
            return None

        customer = Customer.query.filter_by(store_id=store_id, email=email).first()
        if customer is None:
            customer = Customer(
                store_id=store_id,
                email=email,
                first_name=snapshot.customer.first_name,
                last_name=snapshot.customer.last_name,
                phone=snapshot.customer.phone,
                credit_balance=Decimal('0'),
                total_orders=0,
                total_spent=Decimal('0'),
            )
            db.session.add(customer)
            db.session.flush()
        return customer

    @staticmethod
    def build(store, pending, signal):
        snapshot = OrderSnapshot.from_pending(pending)
        pending_id = pending.id

        try:
            if not TransitionGuard.claim_pending(pending, commit=False):
                db.session.rollback()
                return FallbackOrderBuilder._existing_result(store, pending_id)

            customer = FallbackOrderBuilder.resolve_customer(store.id, pending, snapshot)
            order_number = FallbackOrderBuilder.next_order_number(store.id)
            now = utcnow()

            order = Order(
                store_id=store.id,
                order_number=order_number,
                customer_id=customer.id if customer else None,
                customer_email=snapshot.customer.email or pending.customer_email,
                customer_name=snapshot.customer.full_name,
                customer_phone=snapshot.customer.phone,
                status=OrderStatus.CONFIRMED,
                financial_status=FinancialStatus.PAID,
                fulfillment_status=FulfillmentStatus.UNFULFILLED,
                currency=pending.currency or store.currency,
                subtotal=snapshot.subtotal,
                discount_code=snapshot.coupon_code,
                discount_amount=snapshot.discount_total,
                discount_details=[d.to_dict() for d in snapshot.discounts],
                credit_used=snapshot.credit_used,
                shipping_amount=snapshot.shipping.cost,
                tax_amount=snapshot.tax,
                total=snapshot.total,
                shipping_method=snapshot.shipping.method,
                shipping_address=snapshot.shipping.address,
                payment_method=signal.provider,
                payment_details=signal.payment_snapshot(),
                influencer_id=pending.influencer_id,
                paid_at=now,
            )
            for line in snapshot.lines:
                order.items.append(OrderItem(
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    name=line.name,
                    variant_title=line.variant_title,
                    sku=line.sku,
                    image_url=line.image_url,
                    quantity=line.quantity,
                    price=line.price,
                    total=line.line_total,
                    properties=line.properties(),
                ))
            db.session.add(order)
            db.session.flush()

            db.session.query(PendingPayment).filter_by(id=pending_id).update(
                {'order_id': order.id}, synchronize_session=False
            )
            db.session.commit()
        except Exception:
            db.session.rollback()
            current_app.logger.error(
                f"Fallback order build failed store={store.slug} pending_payment={pending_id}", exc_info=True
            )
            raise

        amount_paid = to_decimal(signal.amount)
        if amount_paid and abs(amount_paid - snapshot.total) > Decimal('0.01'):
            current_app.logger.warning(
                f"Order {order.order_number} total {snapshot.total} differs from paid amount {amount_paid}"
            )
        current_app.logger.info(
            f"Created order {order.order_number} (id={order.id}) from pending payment {pending_id}"
        )
        return FallbackResult(order=order, created=True, snapshot=snapshot)

    @staticmethod
    def _existing_result(store, pending_id):
        """다른 요청이 이미 선점한 경우: 그 요청이 만든 주문을 돌려준다 (원장 처리 없음)"""
        pending = db.session.get(PendingPayment, pending_id, populate_existing=True)
        order = db.session.get(Order, pending.order_id) if pending and pending.order_id else None
        if order is None or order.store_id != store.id:
            raise OrderNotFoundError(f"Pending payment {pending_id} was claimed without an order")
        current_app.logger.info(
            f"Pending payment {pending_id} already settled as order {order.order_number}"
        )
        return FallbackResult(order=order, created=False)

from dataclasses import dataclass
from typing import Optional

from flask import current_app

from flowpay.constants import PendingPaymentStatus
from flowpay.errors import OrderNotFoundError
from flowpay.models import Order, PendingPayment
from flowpay.extensions import db
from flowpay.utils import clean_reference

# 참조번호로 PendingPayment 를 찾을 때 훑어보는 최대 건수
REFERENCE_SCAN_LIMIT = 100

class ResolutionKind:
    ALREADY_SETTLED = 'already_settled'
    SETTLE_ORDER = 'settle_order'
    DEGRADED = 'degraded'
    BUILD_FROM_PENDING = 'build_from_pending'

@dataclass
class Resolution:
    kind: str
    order: Optional[Order] = None
    pending_payment: Optional[PendingPayment] = None

class SettlementResolver:
    """
    SettlementSignal 로 정산 대상 주문을 찾는다. 조회만 하며 쓰기는 하지 않는다.

    순서:
      1. 스토어 내 주문번호(order_reference) 로 Order
      2. provider request id (없으면 order_data.order_reference) 로 PendingPayment
      3. PendingPayment 에 연결된 order_id 가 있으면 그 Order
    """

    @staticmethod
    def find_order_by_reference(store_id, reference):
        reference = clean_reference(reference)
        if not reference:
            return None
        return Order.query.filter_by(store_id=store_id, order_number=reference).first()

    @staticmethod
    def find_pending_payment(store_id, signal):
        if signal.request_id:
            pending = PendingPayment.query.filter_by(
                store_id=store_id, provider_request_id=signal.request_id
            ).first()
            if pending:
                return pending

        reference = clean_reference(signal.order_reference)
        if not reference:
            return None

        # order_data 는 JSON 이라 DB 별 질의 대신 최근 대기 건을 훑는다
        candidates = PendingPayment.query.filter_by(
            store_id=store_id, status=PendingPaymentStatus.PENDING
        ).order_by(PendingPayment.id.desc()).limit(REFERENCE_SCAN_LIMIT).all()
        for candidate in candidates:
            if clean_reference(candidate.order_reference) == reference:
                return candidate
        return None

    @staticmethod
    def resolve(store, signal):
        order = SettlementResolver.find_order_by_reference(store.id, signal.order_reference)
        pending = SettlementResolver.find_pending_payment(store.id, signal)

        if order is None and pending is not None and pending.order_id:
            linked = db.session.get(Order, pending.order_id)
            if linked is not None and linked.store_id == store.id:
                order = linked

        if order is not None:
            if order.is_paid:
                current_app.logger.info(
                    f"Order {order.order_number} (store={store.slug}) already paid, skipping settlement"
                )
                return Resolution(ResolutionKind.ALREADY_SETTLED, order=order, pending_payment=pending)

            if pending is not None and pending.status == PendingPaymentStatus.PENDING \
                    and pending.order_id in (None, order.id):
                return Resolution(ResolutionKind.SETTLE_ORDER, order=order, pending_payment=pending)

            return Resolution(ResolutionKind.DEGRADED, order=order)

        if pending is not None and pending.status == PendingPaymentStatus.PENDING:
            return Resolution(ResolutionKind.BUILD_FROM_PENDING, pending_payment=pending)

        current_app.logger.warning(
            f"Unresolvable settlement signal store={store.slug} provider={signal.provider} "
            f"reference={signal.order_reference} request_id={signal.request_id}"
        )
        raise OrderNotFoundError(
            f"No order or pending payment matches reference={signal.order_reference} request_id={signal.request_id}"
        )

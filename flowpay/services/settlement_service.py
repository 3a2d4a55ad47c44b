from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from flask import current_app

from flowpay.constants import TransactionStatus
from flowpay.errors import AmountMismatchError, PaymentFailedError, SnapshotError
from flowpay.extensions import db
from flowpay.models import Order, PaymentTransaction
from flowpay.services.capture_service import capture_if_required
from flowpay.services.fallback_order_service import FallbackOrderBuilder
from flowpay.services.gateways import get_normalizer
from flowpay.services.ledger_service import LedgerOrchestrator, LedgerReport
from flowpay.services.notification_service import NotificationDispatcher
from flowpay.services.resolver import ResolutionKind, SettlementResolver
from flowpay.services.snapshot import OrderSnapshot
from flowpay.services.transition_guard import TransitionGuard
from flowpay.utils import to_decimal, utcnow

AMOUNT_TOLERANCE = Decimal('0.01')

class SettlementKind:
    SETTLED = 'settled'
    ALREADY_SETTLED = 'already_settled'
    # 결제 완료 처리됐지만 장바구니 스냅샷이 없어 원장 미처리
    DEGRADED = 'degraded'

@dataclass
class SettlementOutcome:
    order: Order
    kind: str
    created: bool = False
    ledger: Optional[LedgerReport] = None
    notifications: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            'order_number': self.order.order_number,
            'settlement': self.kind,
            'created': self.created,
            'ledger': self.ledger.to_dict() if self.ledger else None,
            'notifications': self.notifications,
        }

class SettlementService:
    """결제 콜백 -> 주문 확정 (정확히 1회) 전체 흐름"""

    @staticmethod
    def normalize(provider, params):
        return get_normalizer(provider).normalize(params)

    @staticmethod
    def settle(store, provider, params):
        signal = SettlementService.normalize(provider, params)
        if not signal.success:
            current_app.logger.info(
                f"Payment failed store={store.slug} provider={provider} status={signal.status} "
                f"code={signal.error_code} message={signal.error_message}"
            )
            raise PaymentFailedError(signal.error_message or 'Payment was not approved')
        return SettlementService.settle_signal(store, signal)

    @staticmethod
    def settle_signal(store, signal):
        # two-phase 게이트웨이는 capture 확정 전에는 아무것도 찾거나 쓰지 않는다
        signal = capture_if_required(store, signal)
        resolution = SettlementResolver.resolve(store, signal)

        if resolution.kind == ResolutionKind.ALREADY_SETTLED:
            return SettlementOutcome(order=resolution.order, kind=SettlementKind.ALREADY_SETTLED)

        if resolution.kind == ResolutionKind.BUILD_FROM_PENDING:
            return SettlementService._settle_from_pending(store, resolution.pending_payment, signal)

        order = resolution.order
        guard = TransitionGuard.settle(order, signal)
        if not guard.won:
            return SettlementOutcome(order=order, kind=SettlementKind.ALREADY_SETTLED)

        snapshot = None
        if resolution.kind == ResolutionKind.SETTLE_ORDER:
            pending = resolution.pending_payment
            try:
                snapshot = OrderSnapshot.from_pending(pending)
            except SnapshotError as e:
                current_app.logger.warning(
                    f"degraded settlement: order {order.order_number} (id={order.id}) paid but "
                    f"cart snapshot of pending payment {pending.id} is invalid: {e}"
                )
            if not TransitionGuard.claim_pending(pending, order_id=order.id):
                current_app.logger.warning(
                    f"Pending payment {pending.id} was already completed while settling order {order.id}"
                )
        else:
            current_app.logger.warning(
                f"degraded settlement: order {order.order_number} (id={order.id}) paid without a pending "
                f"payment, inventory/discount/commission ledgers skipped"
            )

        if snapshot is not None:
            SettlementService._log_skipped_lines(order, snapshot)
        report = LedgerOrchestrator(order, snapshot).run() if snapshot is not None else None
        notifications = NotificationDispatcher.dispatch(order, snapshot, report)
        return SettlementOutcome(
            order=order,
            kind=SettlementKind.SETTLED if snapshot is not None else SettlementKind.DEGRADED,
            ledger=report,
            notifications=notifications,
        )

    @staticmethod
    def _settle_from_pending(store, pending, signal):
        result = FallbackOrderBuilder.build(store, pending, signal)
        if not result.created:
            return SettlementOutcome(order=result.order, kind=SettlementKind.ALREADY_SETTLED)

        SettlementService._log_skipped_lines(result.order, result.snapshot)
        report = LedgerOrchestrator(result.order, result.snapshot).run()
        notifications = NotificationDispatcher.dispatch(result.order, result.snapshot, report)
        return SettlementOutcome(
            order=result.order,
            kind=SettlementKind.SETTLED,
            created=True,
            ledger=report,
            notifications=notifications,
        )

    @staticmethod
    def _log_skipped_lines(order, snapshot):
        for problem in snapshot.skipped_lines:
            current_app.logger.warning(
                f"Order {order.order_number} (id={order.id}): skipped cart line, {problem}"
            )

    # 서버 간 콜백 전용 ------------------------------------------------------

    @staticmethod
    def record_transaction(store, signal, pending=None):
        """콜백 결과를 PaymentTransaction 에 기록 (request id 기준 upsert)"""
        request_id = signal.request_id or (pending.provider_request_id if pending else None)
        try:
            txn = None
            if request_id:
                txn = PaymentTransaction.query.filter_by(
                    store_id=store.id, provider_request_id=request_id
                ).first()
            if txn is None:
                txn = PaymentTransaction(
                    store_id=store.id,
                    provider=signal.provider,
                    provider_request_id=request_id,
                    pending_payment_id=pending.id if pending else None,
                    amount=to_decimal(signal.amount),
                    currency=pending.currency if pending else store.currency,
                )
                db.session.add(txn)

            txn.status = TransactionStatus.SUCCESS if signal.success else TransactionStatus.FAILED
            txn.provider_transaction_id = signal.transaction_id or txn.provider_transaction_id
            txn.provider_approval_num = signal.payment.approval_number
            txn.error_code = signal.error_code
            txn.error_message = signal.error_message
            txn.provider_response = signal.raw
            txn.processed_at = utcnow()
            db.session.commit()
            return txn
        except Exception:
            db.session.rollback()
            current_app.logger.error(
                f"Failed to record payment transaction store={store.slug} request_id={request_id}", exc_info=True
            )
            raise

    @staticmethod
    def attach_order(txn, order):
        if txn.order_id == order.id:
            return
        txn.order_id = order.id
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            current_app.logger.error(f"Failed to link transaction {txn.id} to order {order.id}", exc_info=True)

    @staticmethod
    def verify_amount(pending, signal):
        """결제 금액과 스냅샷 합계 비교. 불일치 시 ENFORCE_AMOUNT_MATCH 면 거부"""
        paid = to_decimal(signal.amount)
        if pending is None or paid == 0:
            return True
        try:
            snapshot = OrderSnapshot.from_pending(pending)
        except SnapshotError:
            return True
        # 건너뛴 라인이 있으면 합계를 신뢰할 수 없음
        if snapshot.skipped_lines:
            return True
        expected = snapshot.total

        if abs(paid - expected) <= AMOUNT_TOLERANCE:
            return True

        current_app.logger.error(
            f"Amount mismatch pending_payment={pending.id}: expected {expected}, got {paid}"
        )
        if current_app.config.get('ENFORCE_AMOUNT_MATCH'):
            raise AmountMismatchError(f"Expected {expected}, got {paid}")
        return False

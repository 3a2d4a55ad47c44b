from dataclasses import dataclass

from flask import current_app
from sqlalchemy import update

from flowpay.constants import OrderStatus, FinancialStatus, PendingPaymentStatus
from flowpay.extensions import db
from flowpay.models import Order, PendingPayment
from flowpay.utils import utcnow

@dataclass
class GuardResult:
    won: bool
    order: Order

    @property
    def already_settled(self):
        return not self.won

class TransitionGuard:
    """
    주문 결제 상태 pending -> paid 전환의 유일한 경로.
    조건부 UPDATE (WHERE financial_status='pending') 의 rowcount 로 승자를 판정하고,
    원장 처리 전에 커밋해서 전환을 확정한다.
    """

    @staticmethod
    def settle(order, signal):
        if order.financial_status == FinancialStatus.PAID:
            return GuardResult(won=False, order=order)

        now = utcnow()
        try:
            result = db.session.execute(
                update(Order)
                .where(
                    Order.id == order.id,
                    Order.store_id == order.store_id,
                    Order.financial_status == FinancialStatus.PENDING,
                )
                .values(
                    financial_status=FinancialStatus.PAID,
                    status=OrderStatus.CONFIRMED,
                    payment_method=signal.provider,
                    payment_details=signal.payment_snapshot(),
                    paid_at=now,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            won = result.rowcount == 1
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        db.session.refresh(order)
        if won:
            current_app.logger.info(f"Order {order.order_number} (id={order.id}) transitioned pending -> paid")
        else:
            current_app.logger.info(f"Order {order.order_number} (id={order.id}) lost settlement race, already paid")
        return GuardResult(won=won, order=order)

    @staticmethod
    def claim_pending(pending, order_id=None, commit=True):
        """
        PendingPayment pending -> completed 조건부 전환. 성공한 호출자만 True.
        commit=False 면 호출자의 트랜잭션 안에서 실행 (FallbackOrderBuilder).
        """
        values = {'status': PendingPaymentStatus.COMPLETED, 'completed_at': utcnow()}
        if order_id is not None:
            values['order_id'] = order_id

        result = db.session.execute(
            update(PendingPayment)
            .where(
                PendingPayment.id == pending.id,
                PendingPayment.store_id == pending.store_id,
                PendingPayment.status == PendingPaymentStatus.PENDING,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        claimed = result.rowcount == 1
        if commit:
            db.session.commit()
            db.session.refresh(pending)
        return claimed

from sqlalchemy import update

from conftest import cart_line, payplus_success
from flowpay.constants import FinancialStatus, OrderStatus, PendingPaymentStatus
from flowpay.extensions import db
from flowpay.models import Order
from flowpay.services.gateways import get_normalizer
from flowpay.services.transition_guard import TransitionGuard

def _signal():
    return get_normalizer('payplus').normalize(payplus_success(reference='1000'))

def test_first_settle_wins_and_records_payment(store, make_order):
    order = make_order()

    result = TransitionGuard.settle(order, _signal())

    assert result.won
    assert order.financial_status == FinancialStatus.PAID
    assert order.status == OrderStatus.CONFIRMED
    assert order.payment_method == 'payplus'
    assert order.payment_details['transaction_id'] == 'txn-abc'
    assert order.payment_details['card_last_four'] == '4242'
    assert order.paid_at is not None

def test_second_settle_loses(store, make_order):
    order = make_order()
    assert TransitionGuard.settle(order, _signal()).won

    result = TransitionGuard.settle(order, _signal())
    assert not result.won
    assert result.already_settled

def test_stale_copy_loses_conditional_update(store, make_order):
    order = make_order()
    assert order.financial_status == FinancialStatus.PENDING

    # 다른 요청이 먼저 전환한 상황 (메모리의 order 는 아직 pending)
    db.session.execute(
        update(Order).where(Order.id == order.id)
        .values(financial_status=FinancialStatus.PAID)
        .execution_options(synchronize_session=False)
    )
    assert order.financial_status == FinancialStatus.PENDING

    result = TransitionGuard.settle(order, _signal())
    assert not result.won
    assert order.financial_status == FinancialStatus.PAID

def test_claim_pending_only_once(store, product, make_order, make_pending):
    order = make_order()
    pending = make_pending([cart_line(product, 1)])

    assert TransitionGuard.claim_pending(pending, order_id=order.id)
    assert pending.status == PendingPaymentStatus.COMPLETED
    assert pending.order_id == order.id
    assert pending.completed_at is not None

    assert not TransitionGuard.claim_pending(pending, order_id=order.id)

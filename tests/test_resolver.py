import pytest

from conftest import cart_line, payplus_success
from flowpay.constants import FinancialStatus, PendingPaymentStatus
from flowpay.errors import OrderNotFoundError
from flowpay.extensions import db
from flowpay.services.gateways import get_normalizer
from flowpay.services.resolver import ResolutionKind, SettlementResolver

def _signal(**kwargs):
    return get_normalizer('payplus').normalize(payplus_success(**kwargs))

def test_order_and_pending_resolve_to_settle_order(store, product, make_order, make_pending):
    order = make_order()
    pending = make_pending([cart_line(product, 1)], order=order)

    resolution = SettlementResolver.resolve(store, _signal(reference='1000'))

    assert resolution.kind == ResolutionKind.SETTLE_ORDER
    assert resolution.order.id == order.id
    assert resolution.pending_payment.id == pending.id

def test_reference_with_hash_prefix(store, product, make_order, make_pending):
    make_order()
    make_pending([cart_line(product, 1)])
    resolution = SettlementResolver.resolve(store, _signal(reference='#1000'))
    assert resolution.kind == ResolutionKind.SETTLE_ORDER

def test_paid_order_is_already_settled(store, make_order):
    order = make_order()
    order.financial_status = FinancialStatus.PAID
    db.session.commit()

    resolution = SettlementResolver.resolve(store, _signal(reference='1000', request_id=None))
    assert resolution.kind == ResolutionKind.ALREADY_SETTLED

def test_order_without_pending_is_degraded(store, make_order):
    make_order()
    resolution = SettlementResolver.resolve(store, _signal(reference='1000', request_id='unknown-req'))
    assert resolution.kind == ResolutionKind.DEGRADED
    assert resolution.pending_payment is None

def test_pending_only_builds_from_pending(store, product, make_pending):
    pending = make_pending([cart_line(product, 1)])
    resolution = SettlementResolver.resolve(store, _signal())
    assert resolution.kind == ResolutionKind.BUILD_FROM_PENDING
    assert resolution.pending_payment.id == pending.id

def test_pending_found_by_order_reference_when_request_id_unknown(store, product, make_pending):
    pending = make_pending([cart_line(product, 1)], request_id='other', order_data={'order_reference': 'R-77'})
    resolution = SettlementResolver.resolve(store, _signal(reference='R-77', request_id='nope'))
    assert resolution.kind == ResolutionKind.BUILD_FROM_PENDING
    assert resolution.pending_payment.id == pending.id

def test_pending_linked_order_is_used(store, product, make_order, make_pending):
    order = make_order(order_number='2001')
    make_pending([cart_line(product, 1)], order=order)
    resolution = SettlementResolver.resolve(store, _signal())
    assert resolution.kind == ResolutionKind.SETTLE_ORDER
    assert resolution.order.id == order.id

def test_completed_pending_without_order_is_not_found(store, product, make_pending):
    pending = make_pending([cart_line(product, 1)])
    pending.status = PendingPaymentStatus.COMPLETED
    db.session.commit()
    with pytest.raises(OrderNotFoundError):
        SettlementResolver.resolve(store, _signal())

def test_nothing_matches(store):
    with pytest.raises(OrderNotFoundError):
        SettlementResolver.resolve(store, _signal(reference='9999', request_id='missing'))

def test_other_store_order_is_ignored(app, store, make_order):
    from flowpay.models import Store
    other = Store(slug='other', store_name='Other')
    db.session.add(other)
    db.session.commit()
    make_order()
    with pytest.raises(OrderNotFoundError):
        SettlementResolver.resolve(other, _signal(reference='1000', request_id=None))

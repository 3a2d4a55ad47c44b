import pytest
import requests

from flowpay import celery_tasks
from flowpay.constants import EventType, FulfillmentStatus
from flowpay.errors import CarrierError, CarrierTransportError
from flowpay.extensions import db
from flowpay.models import (
    BundleComponent, Order, Setting, Shipment, ShippingProvider, StoreEvent, WaitlistEntry
)
from flowpay.services import email_service, shipping_service
from flowpay.services.email_service import EmailService
from flowpay.services.event_service import EventService
from flowpay.services.ledger_service import LedgerReport
from flowpay.services.notification_service import NotificationDispatcher
from flowpay.services.shipping_service import CargoCarrier, ShippingService

class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError('no json')
        return self._body

@pytest.fixture
def cargo(store):
    provider = ShippingProvider(store_id=store.id, provider='cargo', is_active=True, is_default=True, settings={
        'auto_send_on_payment': True,
        'api_token': 'cargo-token',
        'customer_code': 'C-100',
        'sender_name': 'Demo Warehouse',
        'sender_phone': '+972-50-1234567',
        'sender_street': 'Herzl 1',
        'sender_city': 'Tel Aviv',
    })
    db.session.add(provider)
    db.session.commit()
    return provider

@pytest.fixture
def paid_order(store, product, make_order):
    order = make_order(items=[(product, 2)])
    order.customer_name = 'Dana Levi'
    order.customer_email = 'dana@example.com'
    order.shipping_address = {'name': 'Dana Levi', 'phone': '050-1112222', 'street': 'Ben Yehuda',
                              'house_number': '10', 'city': 'Haifa'}
    db.session.commit()
    return order

# 재고 이벤트 ---------------------------------------------------------------

def test_low_and_out_of_stock_events(store, make_product):
    low = make_product(name='Low', inventory=2)
    empty = make_product(name='Empty', inventory=0)
    plenty = make_product(name='Plenty', inventory=50)
    db.session.add(WaitlistEntry(store_id=store.id, product_id=empty.id, email='w@example.com'))
    db.session.commit()

    emitted = EventService.check_low_stock(store.id, [(low.id, None), (empty.id, None), (plenty.id, None)])

    assert sorted(emitted) == sorted([EventType.LOW_STOCK, EventType.OUT_OF_STOCK])
    out = StoreEvent.query.filter_by(event_type=EventType.OUT_OF_STOCK).one()
    assert out.resource_id == empty.id
    assert out.data['waitlist_count'] == 1
    assert StoreEvent.query.filter_by(event_type=EventType.LOW_STOCK).one().data['inventory'] == 2

def test_store_threshold_setting_overrides_config(store, make_product):
    product = make_product(inventory=8)
    db.session.add(Setting(store_id=store.id, key='LOW_STOCK_THRESHOLD', value='10'))
    db.session.commit()

    assert EventService.check_low_stock(store.id, [(product.id, None)]) == [EventType.LOW_STOCK]

def test_bundle_expands_to_components(store, make_product):
    part = make_product(name='Part', inventory=1)
    bundle = make_product(name='Bundle', inventory=None, is_bundle=True)
    db.session.add(BundleComponent(bundle_product_id=bundle.id, product_id=part.id, quantity=1))
    db.session.commit()

    EventService.check_low_stock(store.id, [(bundle.id, None), (part.id, None)])

    events = StoreEvent.query.all()
    assert len(events) == 1
    assert events[0].resource_id == part.id

def test_low_stock_task_runs_in_app_context(store, make_product):
    product = make_product(inventory=1)
    result = celery_tasks.task_check_low_stock.delay(store.id, [[product.id, None]]).get()
    assert result == {'status': 'completed', 'result': {'events': [EventType.LOW_STOCK]}}

def test_order_created_event(store, paid_order):
    event = EventService.emit_order_created(paid_order)
    assert event.event_type == EventType.ORDER_CREATED
    assert event.data['order_number'] == '1000'
    assert event.data['item_count'] == 1

# 자동 발송 -----------------------------------------------------------------

def test_auto_dispatch_skipped_without_provider(paid_order):
    assert ShippingService.auto_dispatch(paid_order.id)['status'] == 'skipped'

def test_auto_dispatch_success(paid_order, cargo, monkeypatch):
    calls = []

    def post(url, json=None, headers=None, timeout=None):
        calls.append((url, json, headers))
        return FakeResponse(200, {'errors': False, 'data': {'shipment_id': 778899}})
    monkeypatch.setattr(shipping_service.requests, 'post', post)

    result = ShippingService.auto_dispatch(paid_order.id)

    assert result == {'status': 'success', 'tracking_number': '778899'}
    url, body, headers = calls[0]
    assert url == 'https://api-v2.cargo.co.il/api/shipments/create'
    assert headers['Authorization'] == 'Bearer cargo-token'
    assert body['customer_code'] == 'C-100'
    assert body['to_address']['street1'] == 'Ben Yehuda 10'
    assert body['from_address']['phone'] == '0501234567'
    assert body['total_value'] == 100.0

    db.session.expire_all()
    order = db.session.get(Order, paid_order.id)
    assert order.fulfillment_status == FulfillmentStatus.FULFILLED
    assert order.shipment_error is None
    assert Shipment.query.one().tracking_number == '778899'

    # 두 번째 호출은 중복 발송하지 않음
    assert ShippingService.auto_dispatch(paid_order.id)['status'] == 'skipped'
    assert len(calls) == 1

def test_auto_dispatch_business_error_is_recorded(paid_order, cargo, monkeypatch):
    monkeypatch.setattr(shipping_service.requests, 'post',
                        lambda *a, **kw: FakeResponse(422, {'errors': True, 'message': 'Invalid city'}))

    result = ShippingService.auto_dispatch(paid_order.id)

    assert result == {'status': 'error', 'message': 'Invalid city'}
    db.session.expire_all()
    order = db.session.get(Order, paid_order.id)
    assert order.shipment_error == 'Invalid city'
    assert order.shipment_error_at is not None
    assert order.fulfillment_status == FulfillmentStatus.UNFULFILLED

def test_auto_dispatch_transport_error_propagates(paid_order, cargo, monkeypatch):
    def post(*args, **kwargs):
        raise requests.exceptions.ConnectTimeout('timed out')
    monkeypatch.setattr(shipping_service.requests, 'post', post)

    with pytest.raises(CarrierTransportError):
        ShippingService.auto_dispatch(paid_order.id)

def test_auto_dispatch_task_gives_up_and_records(app, paid_order, cargo, monkeypatch):
    monkeypatch.setattr(shipping_service.requests, 'post', lambda *a, **kw: FakeResponse(503, None))
    monkeypatch.setitem(app.config, 'NOTIFICATION_MAX_RETRIES', 0)

    result = celery_tasks.task_auto_dispatch_shipment.apply(args=[paid_order.id]).get()

    assert result['status'] == 'error'
    db.session.expire_all()
    assert 'after 0 retries' in db.session.get(Order, paid_order.id).shipment_error

def test_cargo_requires_credentials():
    with pytest.raises(CarrierError) as exc:
        CargoCarrier({'api_token': 'x'})
    assert exc.value.code == 'not_configured'

def test_unsupported_carrier_is_recorded(store, paid_order):
    db.session.add(ShippingProvider(store_id=store.id, provider='pigeon', is_default=True,
                                    settings={'auto_send_on_payment': True}))
    db.session.commit()

    assert ShippingService.auto_dispatch(paid_order.id)['status'] == 'error'
    db.session.expire_all()
    assert 'pigeon' in db.session.get(Order, paid_order.id).shipment_error

# 이메일 --------------------------------------------------------------------

class FakeSendGrid:
    sent = []

    def __init__(self, api_key):
        self.api_key = api_key

    def send(self, message):
        FakeSendGrid.sent.append(message)
        return type('Response', (), {'status_code': 202})()

def test_email_skipped_without_api_key(paid_order):
    assert EmailService.send_order_confirmation(paid_order.id) is False

def test_order_confirmation_sent_through_sendgrid(app, paid_order, monkeypatch):
    FakeSendGrid.sent = []
    monkeypatch.setitem(app.config, 'SENDGRID_API_KEY', 'SG.test')
    monkeypatch.setattr(email_service, 'SendGridAPIClient', FakeSendGrid)

    assert EmailService.send_order_confirmation(paid_order.id) is True

    message = FakeSendGrid.sent[0].get()
    assert 'Order #1000' in message['subject']
    assert message['personalizations'][0]['to'][0]['email'] == 'dana@example.com'
    assert 'Cotton Tee' in message['content'][0]['value']

def test_gift_card_email(app, store, make_gift_card, monkeypatch):
    FakeSendGrid.sent = []
    card = make_gift_card()
    card.recipient_email = 'friend@example.com'
    card.sender_name = 'Dana'
    db.session.commit()
    monkeypatch.setitem(app.config, 'SENDGRID_API_KEY', 'SG.test')
    monkeypatch.setattr(email_service, 'SendGridAPIClient', FakeSendGrid)

    assert EmailService.send_gift_card(card.id) is True
    assert card.code in FakeSendGrid.sent[0].get()['content'][0]['value']

# 디스패처 ------------------------------------------------------------------

class BrokenTask:
    name = 'broken'

    def delay(self, *args):
        raise ConnectionError('broker down')

def test_dispatch_enqueues_follow_up_tasks(paid_order, product):
    report = LedgerReport(order_id=paid_order.id)
    snapshot = object()

    task_ids = NotificationDispatcher.dispatch(paid_order, snapshot, report)

    assert set(task_ids) == {'confirmation_email', 'order_created', 'auto_dispatch', 'low_stock'}
    assert all(task_ids.values())
    db.session.expire_all()
    assert StoreEvent.query.filter_by(event_type=EventType.ORDER_CREATED).count() == 1

def test_dispatch_survives_enqueue_failure(paid_order, monkeypatch):
    monkeypatch.setattr(celery_tasks, 'task_send_order_confirmation', BrokenTask())

    task_ids = NotificationDispatcher.dispatch(paid_order)

    assert task_ids['confirmation_email'] is None
    assert task_ids['order_created'] is not None
    assert 'low_stock' not in task_ids

def test_dispatch_sends_issued_gift_cards(paid_order, monkeypatch):
    captured = []

    class RecordingTask:
        name = 'gift_cards'

        def delay(self, *args):
            captured.append(args)
            return type('Result', (), {'id': 'task-1'})()
    monkeypatch.setattr(celery_tasks, 'task_send_gift_cards', RecordingTask())

    report = LedgerReport(order_id=paid_order.id, issued_gift_card_ids=[7, 8])
    task_ids = NotificationDispatcher.dispatch(paid_order, None, report)

    assert task_ids['gift_cards'] == 'task-1'
    assert captured == [([7, 8],)]

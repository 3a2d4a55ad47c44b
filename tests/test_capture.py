from decimal import Decimal

import pytest
import requests

from flowpay.errors import CaptureFailedError
from flowpay.extensions import db
from flowpay.models import Setting
from flowpay.services import capture_service
from flowpay.services.capture_service import capture_if_required
from flowpay.services.gateways import get_normalizer

class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body or {}
        self.content = b'{}' if body is not None else b''

    def json(self):
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"HTTP {self.status_code}")

@pytest.fixture
def paypal_store(store):
    for key, value in (('PAYPAL_CLIENT_ID', 'cid'), ('PAYPAL_CLIENT_SECRET', 'secret'), ('PAYPAL_MODE', 'sandbox')):
        db.session.add(Setting(store_id=store.id, key=key, value=value))
    db.session.commit()
    return store

def _approved_signal():
    return get_normalizer('paypal').normalize({'token': 'PP-ORDER-1', 'PayerID': 'PAYER', 'ref': '1000'})

def _fake_post(capture_response, calls):
    def post(url, **kwargs):
        calls.append((url, kwargs))
        if url.endswith('/v1/oauth2/token'):
            return FakeResponse(200, {'access_token': 'tok'})
        return capture_response
    return post

def test_completed_capture_confirms_signal(app, paypal_store, monkeypatch):
    calls = []
    body = {
        'status': 'COMPLETED',
        'purchase_units': [{'payments': {'captures': [{'id': 'CAP-9', 'amount': {'value': '99.90'}}]}}],
    }
    monkeypatch.setattr(capture_service.requests, 'post', _fake_post(FakeResponse(201, body), calls))

    signal = capture_if_required(paypal_store, _approved_signal())

    assert signal.success
    assert signal.status == 'captured'
    assert not signal.requires_capture
    assert signal.transaction_id == 'CAP-9'
    assert signal.amount == Decimal('99.90')
    capture_url, capture_kwargs = calls[1]
    assert capture_url.startswith(app.config['PAYPAL_SANDBOX_API_BASE'])
    assert capture_url.endswith('/v2/checkout/orders/PP-ORDER-1/capture')
    assert capture_kwargs['headers']['PayPal-Request-Id'] == 'capture-PP-ORDER-1-PAYER'

def test_already_captured_is_success(paypal_store, monkeypatch):
    body = {'name': 'UNPROCESSABLE_ENTITY', 'details': [{'issue': 'ORDER_ALREADY_CAPTURED'}]}
    monkeypatch.setattr(capture_service.requests, 'post', _fake_post(FakeResponse(422, body), []))

    signal = capture_if_required(paypal_store, _approved_signal())

    assert signal.status == 'captured'
    assert signal.transaction_id == 'PP-ORDER-1'

def test_declined_capture_raises(paypal_store, monkeypatch):
    body = {'name': 'UNPROCESSABLE_ENTITY', 'details': [{'issue': 'INSTRUMENT_DECLINED'}]}
    monkeypatch.setattr(capture_service.requests, 'post', _fake_post(FakeResponse(422, body), []))

    with pytest.raises(CaptureFailedError) as exc:
        capture_if_required(paypal_store, _approved_signal())
    assert exc.value.reason == 'paypal_capture_failed'

def test_network_error_raises_capture_failed(paypal_store, monkeypatch):
    def post(url, **kwargs):
        raise requests.exceptions.ConnectionError('boom')
    monkeypatch.setattr(capture_service.requests, 'post', post)

    with pytest.raises(CaptureFailedError):
        capture_if_required(paypal_store, _approved_signal())

def test_missing_credentials_raise(store):
    with pytest.raises(CaptureFailedError):
        capture_if_required(store, _approved_signal())

def test_single_phase_signal_passes_through(store, monkeypatch):
    def post(url, **kwargs):
        raise AssertionError('no HTTP call expected')
    monkeypatch.setattr(capture_service.requests, 'post', post)

    signal = get_normalizer('payplus').normalize({'status_code': '000', 'page_request_uid': 'r1'})
    assert capture_if_required(store, signal) is signal

def test_token_response_without_access_token_raises(paypal_store, monkeypatch):
    calls = []

    def post(url, **kwargs):
        calls.append(url)
        return FakeResponse(200, {'error': 'invalid_client'})
    monkeypatch.setattr(capture_service.requests, 'post', post)

    with pytest.raises(CaptureFailedError) as exc:
        capture_if_required(paypal_store, _approved_signal())
    assert exc.value.reason == 'paypal_capture_failed'
    assert len(calls) == 1

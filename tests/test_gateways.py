from decimal import Decimal

import pytest

from flowpay.errors import UnknownGatewayError
from flowpay.services.gateways import get_normalizer

def test_payplus_success_extracts_payment_metadata():
    signal = get_normalizer('payplus').normalize({
        'status': 'approved', 'status_code': '000', 'more_info': '1042',
        'page_request_uid': 'req-9', 'transaction_uid': 'tx-1', 'approval_num': '777',
        'four_digits': '1234', 'brand_name': 'Mastercard', 'amount': '120.50',
    })
    assert signal.success
    assert signal.order_reference == '1042'
    assert signal.request_id == 'req-9'
    assert signal.payment.transaction_id == 'tx-1'
    assert signal.payment.approval_number == '777'
    assert signal.payment.card_last_four == '1234'
    assert signal.payment.card_brand == 'Mastercard'
    assert signal.amount == Decimal('120.50')

@pytest.mark.parametrize('params', [
    {'status': 'rejected', 'status_code': '000', 'page_request_uid': 'req-9'},
    {'status': 'error', 'page_request_uid': 'req-9'},
    {'status_code': '006', 'page_request_uid': 'req-9'},
])
def test_payplus_explicit_failures(params):
    signal = get_normalizer('payplus').normalize(params)
    assert not signal.success
    assert signal.request_id == 'req-9'

def test_payplus_without_success_indicator_is_failure():
    signal = get_normalizer('payplus').normalize({'page_request_uid': 'req-9', 'more_info': '1000'})
    assert not signal.success
    assert signal.status == 'unknown'

def test_payplus_nested_webhook_shape():
    signal = get_normalizer('payplus').normalize({
        'transaction': {'status_code': '000', 'page_request_uid': 'req-3', 'uid': 'tx-3', 'more_info': '1001'},
        'data': {'card_information': {'four_digits': '9999', 'brand_name': 'Visa'}},
    })
    assert signal.success
    assert signal.request_id == 'req-3'
    assert signal.payment.transaction_id == 'tx-3'
    assert signal.payment.card_last_four == '9999'

def test_pelecard_uses_transaction_id_as_request_id():
    signal = get_normalizer('pelecard').normalize({
        'PelecardStatusCode': '000', 'PelecardTransactionId': 'pc-55', 'ApprovalNo': '4411', 'UserKey': '1003',
    })
    assert signal.success
    assert signal.request_id == 'pc-55'
    assert signal.payment.transaction_id == 'pc-55'
    assert signal.order_reference == '1003'

def test_pelecard_failure_keeps_error_details():
    signal = get_normalizer('pelecard').normalize({
        'PelecardStatusCode': '033', 'ErrorCode': '033', 'ErrorMessage': 'Card declined',
    })
    assert not signal.success
    assert signal.error_code == '033'
    assert signal.error_message == 'Card declined'

@pytest.mark.parametrize('code', ['0', '000', 'success'])
def test_payme_success_codes(code):
    signal = get_normalizer('payme').normalize({'status_code': code, 'payme_sale_id': 'SALE1', 'price': '12550'})
    assert signal.success
    assert signal.request_id == 'SALE1'
    assert signal.amount == Decimal('125.50')

def test_payme_failed_sale():
    signal = get_normalizer('payme').normalize({'sale_status': 'failed', 'sale_id': 'SALE2'})
    assert not signal.success

def test_paypal_redirect_requires_capture():
    signal = get_normalizer('paypal').normalize({'token': 'PP-ORDER-1', 'PayerID': 'PAYER', 'ref': '1005'})
    assert signal.success
    assert signal.requires_capture
    assert signal.request_id == 'PP-ORDER-1'
    assert signal.capture_token == 'PAYER'

@pytest.mark.parametrize('params', [
    {'token': 'PP-ORDER-1', 'cancel': 'true'},
    {'token': 'PP-ORDER-1'},
    {},
])
def test_paypal_cancel_or_missing_payer_is_failure(params):
    assert not get_normalizer('paypal').normalize(params).success

def test_paypal_capture_completed_webhook():
    signal = get_normalizer('paypal').normalize({
        'event_type': 'PAYMENT.CAPTURE.COMPLETED',
        'resource': {
            'id': 'CAP-1', 'custom_id': '1006', 'amount': {'value': '80.00'},
            'supplementary_data': {'related_ids': {'order_id': 'PP-ORDER-2'}},
        },
    })
    assert signal.success
    assert not signal.requires_capture
    assert signal.payment.transaction_id == 'CAP-1'
    assert signal.request_id == 'PP-ORDER-2'

def test_unknown_provider():
    with pytest.raises(UnknownGatewayError):
        get_normalizer('bitpay')

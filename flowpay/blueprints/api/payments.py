import json
from flask import request, jsonify, current_app

from flowpay.constants import FailureReason
from flowpay.errors import SettlementError, UnknownGatewayError
from flowpay.models import Store
from flowpay.services.resolver import SettlementResolver
from flowpay.services.settlement_service import SettlementService
from . import api_bp

def _callback_params():
    """JSON 본문 또는 form/query 파라미터"""
    params = request.args.to_dict()
    params.pop('provider', None)
    params.pop('store', None)

    body = request.get_data(as_text=True)
    if body:
        try:
            data = json.loads(body)
            if isinstance(data, dict):
                params.update(data)
                return params
        except ValueError:
            pass
    params.update(request.form.to_dict())
    return params

@api_bp.route('/api/payments/callback', methods=['GET'])
def payment_callback_health():
    return jsonify({'status': 'ok', 'message': 'Payment callback endpoint is active'})

@api_bp.route('/api/payments/callback', methods=['POST'])
def payment_callback():
    provider = request.args.get('provider')
    store_slug = request.args.get('store')
    if not provider:
        return jsonify({'status': 'error', 'message': 'Missing provider'}), 400
    if not store_slug:
        return jsonify({'status': 'error', 'message': 'Missing store'}), 400

    store = Store.query.filter_by(slug=store_slug, is_active=True).first()
    if not store:
        return jsonify({'status': 'error', 'message': 'Store not found'}), 404

    try:
        signal = SettlementService.normalize(provider, _callback_params())
    except UnknownGatewayError as e:
        return jsonify({'status': 'error', 'message': e.message, 'reason': e.reason}), 400

    current_app.logger.info(
        f"Payment callback [{provider}] store={store.slug} success={signal.success} "
        f"reference={signal.order_reference} request_id={signal.request_id}"
    )

    pending = SettlementResolver.find_pending_payment(store.id, signal)
    txn = SettlementService.record_transaction(store, signal, pending)

    if not signal.success:
        return jsonify({
            'status': 'error',
            'message': signal.error_message or 'Payment was not approved',
            'reason': FailureReason.PAYMENT_FAILED,
        })

    try:
        SettlementService.verify_amount(pending, signal)
        outcome = SettlementService.settle_signal(store, signal)
    except SettlementError as e:
        return jsonify({'status': 'error', 'message': e.message, 'reason': e.reason}), e.status_code

    SettlementService.attach_order(txn, outcome.order)
    result = outcome.to_dict()
    result.update({'status': 'success', 'message': 'Payment settled'})
    return jsonify(result)

from flask import request, jsonify, redirect, url_for, current_app

from flowpay.errors import SettlementError
from flowpay.models import Order, Store
from flowpay.services.settlement_service import SettlementService
from flowpay.utils import money_str
from . import storefront_bp

def _get_store_or_404(slug):
    return Store.query.filter_by(slug=slug, is_active=True).first_or_404(
        description=f'Store not found: {slug}'
    )

def _order_summary(order):
    payment = order.payment_details or {}
    return {
        'order_number': order.order_number,
        'status': order.status,
        'financial_status': order.financial_status,
        'fulfillment_status': order.fulfillment_status,
        'customer_email': order.customer_email,
        'customer_name': order.customer_name,
        'currency': order.currency,
        'items': [
            {
                'name': i.name,
                'variant_title': i.variant_title,
                'quantity': i.quantity,
                'price': money_str(i.price),
                'total': money_str(i.total),
                'properties': i.properties,
            }
            for i in order.items
        ],
        'subtotal': money_str(order.subtotal),
        'shipping': money_str(order.shipping_amount),
        'discount': money_str(order.discount_amount),
        'discount_details': order.discount_details or [],
        'credit_used': money_str(order.credit_used),
        'total': money_str(order.total),
        'payment': {
            'provider': payment.get('provider'),
            'card_last_four': payment.get('card_last_four'),
            'card_brand': payment.get('card_brand'),
            'approval_number': payment.get('approval_number'),
        },
        'paid_at': order.paid_at.isoformat() if order.paid_at else None,
    }

@storefront_bp.route('/shops/<slug>/checkout/return', methods=['GET', 'POST'])
def checkout_return(slug):
    """게이트웨이 리다이렉트 복귀 지점"""
    store = _get_store_or_404(slug)
    provider = request.args.get('provider')

    params = request.args.to_dict()
    params.pop('provider', None)
    params.update(request.form.to_dict())

    try:
        outcome = SettlementService.settle(store, provider, params)
    except SettlementError as e:
        current_app.logger.info(f"Checkout return failed store={slug} provider={provider} reason={e.reason}: {e}")
        return redirect(url_for('storefront.checkout', slug=slug, error=e.reason))

    return redirect(url_for('storefront.thank_you', slug=slug, order_number=outcome.order.order_number))

@storefront_bp.route('/shops/<slug>/checkout', methods=['GET'])
def checkout(slug):
    store = _get_store_or_404(slug)
    return jsonify({
        'status': 'error' if request.args.get('error') else 'ok',
        'store': store.slug,
        'error': request.args.get('error'),
    })

@storefront_bp.route('/shops/<slug>/checkout/thank-you/<order_number>', methods=['GET'])
def thank_you(slug, order_number):
    store = _get_store_or_404(slug)
    order = Order.query.filter_by(store_id=store.id, order_number=order_number).first_or_404(
        description=f'Order not found: {order_number}'
    )
    return jsonify({'status': 'success', 'order': _order_summary(order)})

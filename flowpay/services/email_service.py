from flask import current_app, render_template
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import From, Mail

from flowpay.constants import DiscountEntryType
from flowpay.models import GiftCard, Order, Store
from flowpay.extensions import db
from flowpay.utils import mask_card, money_str

DISCOUNT_LABELS = {
    DiscountEntryType.COUPON: 'Coupon',
    DiscountEntryType.AUTO: 'Automatic discount',
    DiscountEntryType.GIFT_CARD: 'Gift card',
    DiscountEntryType.CREDIT: 'Store credit',
    DiscountEntryType.MEMBER: 'Member discount',
    DiscountEntryType.LOYALTY_TIER: 'Loyalty tier',
}

class EmailService:

    @staticmethod
    def send(to_email, subject, html_content):
        """SendGrid 발송. API 키 미설정 시 건너뜀(False). HTTP 에러는 호출자에게 전파."""
        api_key = current_app.config.get('SENDGRID_API_KEY')
        if not api_key:
            current_app.logger.warning(f"SendGrid is not configured, skipping email to {to_email}: {subject}")
            return False

        message = Mail(
            from_email=From(current_app.config['SENDGRID_FROM_EMAIL'], current_app.config['SENDGRID_FROM_NAME']),
            to_emails=to_email,
            subject=subject,
            html_content=html_content,
        )
        response = SendGridAPIClient(api_key).send(message)
        current_app.logger.info(f"Email sent to {to_email} ({subject}) status={response.status_code}")
        return 200 <= response.status_code < 300

    @staticmethod
    def order_context(order):
        payment = order.payment_details or {}
        discounts = [
            {
                'label': DISCOUNT_LABELS.get(d.get('type'), d.get('type')),
                'detail': d.get('code') or d.get('name') or '',
                'amount': money_str(d.get('amount')),
            }
            for d in (order.discount_details or [])
        ]
        return {
            'order': order,
            'store': order.store,
            'items': [
                {
                    'name': i.name,
                    'variant_title': i.variant_title,
                    'quantity': i.quantity,
                    'price': money_str(i.price),
                    'total': money_str(i.total),
                    'addons': (i.properties or {}).get('addons', []),
                }
                for i in order.items
            ],
            'subtotal': money_str(order.subtotal),
            'shipping': money_str(order.shipping_amount),
            'discount': money_str(order.discount_amount),
            'discounts': discounts,
            'credit_used': money_str(order.credit_used),
            'total': money_str(order.total),
            'card': mask_card(payment.get('card_last_four')),
            'card_brand': payment.get('card_brand'),
            'approval_number': payment.get('approval_number'),
            'order_url': f"{current_app.config['APP_BASE_URL']}/shops/{order.store.slug}"
                         f"/checkout/thank-you/{order.order_number}",
        }

    @staticmethod
    def send_order_confirmation(order_id):
        order = db.session.get(Order, order_id)
        if order is None or not order.customer_email:
            return False
        html = render_template('email/order_confirmation.html', **EmailService.order_context(order))
        subject = f"{order.store.store_name} - Order #{order.order_number} confirmed"
        return EmailService.send(order.customer_email, subject, html)

    @staticmethod
    def send_gift_card(gift_card_id):
        card = db.session.get(GiftCard, gift_card_id)
        if card is None or not card.recipient_email:
            return False
        store = db.session.get(Store, card.store_id)
        html = render_template(
            'email/gift_card.html',
            card=card,
            store=store,
            amount=money_str(card.initial_balance),
            expires_at=card.expires_at.strftime('%d/%m/%Y') if card.expires_at else None,
        )
        subject = f"You received a gift card from {card.sender_name or (store.store_name if store else 'us')}"
        return EmailService.send(card.recipient_email, subject, html)

from .base import GatewayNormalizer, PaymentDetails, SettlementSignal

FAILED_EVENTS = ('PAYMENT.CAPTURE.DENIED', 'PAYMENT.CAPTURE.DECLINED', 'PAYMENT.CAPTURE.REFUNDED',
                 'CHECKOUT.PAYMENT-APPROVAL.REVERSED')

class PayPalNormalizer(GatewayNormalizer):
    """
    PayPal 은 승인 후 capture 가 필요한 two-phase 게이트웨이.
    - 리다이렉트: token + PayerID 이면 승인(잠정 성공), cancel=true 또는 PayerID 없음은 실패
    - 웹훅: PAYMENT.CAPTURE.COMPLETED 는 이미 capture 된 성공
    """
    name = 'paypal'
    two_phase = True

    def normalize(self, params):
        if params.get('event_type'):
            return self._normalize_webhook(params)

        token = self.first(params, 'token')
        payer_id = self.first(params, 'PayerID', 'payer_id')
        reference = self.first(params, 'ref', 'orderRef')
        cancelled = str(params.get('cancel', '')).lower() == 'true'

        if cancelled or not token or not payer_id:
            return self.failure(
                params,
                status='cancelled' if (cancelled or token) else 'unknown',
                error_message='payer cancelled' if cancelled else 'missing payer approval',
                order_reference=reference,
                request_id=token,
            )

        return SettlementSignal(
            success=True,
            provider=self.name,
            status='approved',
            order_reference=reference,
            request_id=token,
            requires_capture=True,
            capture_token=payer_id,
            raw=dict(params),
        )

    def _normalize_webhook(self, params):
        event_type = params.get('event_type')
        resource = params.get('resource') or {}
        related = (resource.get('supplementary_data') or {}).get('related_ids') or {}
        request_id = related.get('order_id')
        reference = resource.get('custom_id') or resource.get('invoice_id')

        if event_type != 'PAYMENT.CAPTURE.COMPLETED':
            return self.failure(
                params,
                status='failed' if event_type in FAILED_EVENTS else 'ignored',
                error_code=event_type,
                order_reference=reference,
                request_id=request_id,
            )

        return SettlementSignal(
            success=True,
            provider=self.name,
            status='captured',
            order_reference=reference,
            request_id=request_id,
            payment=PaymentDetails(transaction_id=resource.get('id')),
            amount=self.amount((resource.get('amount') or {}).get('value')),
            raw=dict(params),
        )

from .base import GatewayNormalizer, PaymentDetails, SettlementSignal

SUCCESS_CODES = ('0', '000', 'success')
FAILED_SALE_STATUSES = ('failed', 'cancelled', 'declined', 'refunded')

class PayMeNormalizer(GatewayNormalizer):
    """PayMe (quick payments). 리다이렉트 status_code 또는 웹훅 sale_status 로 판단."""
    name = 'payme'

    def normalize(self, params):
        status_code = (self.first(params, 'status_code', 'status') or '').lower()
        sale_status = (self.first(params, 'sale_status') or '').lower()
        request_id = self.first(params, 'payme_sale_id', 'sale_id')
        reference = self.first(params, 'transaction_id', 'ref')

        if sale_status in FAILED_SALE_STATUSES or (status_code and status_code not in SUCCESS_CODES):
            return self.failure(
                params,
                status=sale_status or 'failed',
                error_code=status_code or None,
                error_message=self.first(params, 'status_error_details', 'error_message'),
                order_reference=reference,
                request_id=request_id,
            )

        if status_code not in SUCCESS_CODES and sale_status != 'completed':
            return self.failure(params, status='unknown', order_reference=reference, request_id=request_id,
                                error_message='missing success indicator')

        return SettlementSignal(
            success=True,
            provider=self.name,
            status='approved',
            order_reference=reference,
            request_id=request_id,
            payment=PaymentDetails(
                transaction_id=request_id,
                approval_number=self.first(params, 'payme_transaction_auth_number', 'approval_number'),
                card_last_four=self.first(params, 'buyer_card_mask', 'card_last_four'),
                card_brand=self.first(params, 'payme_transaction_card_brand', 'card_brand'),
            ),
            # PayMe 는 agorot 단위 정수(price) 를 보냄
            amount=self._amount(params),
            raw=dict(params),
        )

    def _amount(self, params):
        if params.get('price') not in (None, ''):
            return self.amount(self.amount(params.get('price')) / 100)
        return self.amount(params.get('amount'))

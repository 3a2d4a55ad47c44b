from .base import GatewayNormalizer, PaymentDetails, SettlementSignal

SUCCESS_CODE = '000'
FAILED_STATUSES = ('rejected', 'error', 'failed', 'declined')

class PayPlusNormalizer(GatewayNormalizer):
    """
    PayPlus 리다이렉트(평면 쿼리) 와 IPN(중첩 transaction 객체) 두 형식 지원.
    status_code == '000' 일 때만 성공.
    """
    name = 'payplus'

    def normalize(self, params):
        data = params
        transaction = params.get('transaction')
        if isinstance(transaction, dict):
            data = dict(transaction)
            card = (params.get('data') or {}).get('card_information') or {}
            data.setdefault('four_digits', card.get('four_digits'))
            data.setdefault('brand_name', card.get('brand_name'))

        status = (self.first(data, 'status') or '').lower()
        status_code = self.first(data, 'status_code')

        reference = self.first(data, 'more_info', 'ref')
        request_id = self.first(data, 'page_request_uid')

        if status in FAILED_STATUSES or (status_code and status_code != SUCCESS_CODE):
            return self.failure(
                params,
                status=status or 'failed',
                error_code=status_code,
                error_message=self.first(data, 'status_description', 'message'),
                order_reference=reference,
                request_id=request_id,
            )

        if status_code != SUCCESS_CODE:
            return self.failure(params, status='unknown', order_reference=reference, request_id=request_id,
                                error_message='missing success indicator')

        return SettlementSignal(
            success=True,
            provider=self.name,
            status='approved',
            order_reference=reference,
            request_id=request_id,
            payment=PaymentDetails(
                transaction_id=self.first(data, 'transaction_uid', 'uid'),
                approval_number=self.first(data, 'approval_num', 'approval_number'),
                card_last_four=self.first(data, 'four_digits'),
                card_brand=self.first(data, 'brand_name'),
            ),
            amount=self.amount(data.get('amount')),
            raw=dict(params),
        )

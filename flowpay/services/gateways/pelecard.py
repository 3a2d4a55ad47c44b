from .base import GatewayNormalizer, PaymentDetails, SettlementSignal

SUCCESS_CODE = '000'

class PelecardNormalizer(GatewayNormalizer):
    name = 'pelecard'

    def normalize(self, params):
        status_code = self.first(params, 'PelecardStatusCode', 'StatusCode')
        transaction_id = self.first(params, 'PelecardTransactionId', 'TransactionId')
        reference = self.first(params, 'UserKey', 'ParamX', 'ref')

        if status_code != SUCCESS_CODE:
            return self.failure(
                params,
                status='failed' if status_code else 'unknown',
                error_code=self.first(params, 'ErrorCode') or status_code,
                error_message=self.first(params, 'ErrorMessage') or ('missing success indicator' if not status_code else None),
                order_reference=reference,
                request_id=transaction_id,
            )

        return SettlementSignal(
            success=True,
            provider=self.name,
            status='approved',
            order_reference=reference,
            # Pelecard 는 결제 요청 ID 와 거래 ID 가 동일
            request_id=transaction_id,
            payment=PaymentDetails(
                transaction_id=transaction_id,
                approval_number=self.first(params, 'ApprovalNo', 'ApprovalNumber'),
                card_last_four=self.first(params, 'CreditCardNumber', 'Last4'),
                card_brand=self.first(params, 'CreditCardCompanyClearer', 'CardBrand'),
            ),
            amount=self.amount(params.get('Total') or params.get('DebitTotal')),
            raw=dict(params),
        )

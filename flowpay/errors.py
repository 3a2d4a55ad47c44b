from flowpay.constants import FailureReason

class SettlementError(Exception):
    """사용자에게 실패로 노출되는 정산 에러 (reason 코드 포함)"""
    reason = FailureReason.PAYMENT_FAILED
    status_code = 400

    def __init__(self, message=None, reason=None):
        super().__init__(message or self.__class__.__name__)
        if reason:
            self.reason = reason

    @property
    def message(self):
        return str(self)

class PaymentFailedError(SettlementError):
    reason = FailureReason.PAYMENT_FAILED

class CaptureFailedError(SettlementError):
    reason = FailureReason.PAYPAL_CAPTURE_FAILED
    status_code = 402

class OrderNotFoundError(SettlementError):
    reason = FailureReason.ORDER_NOT_FOUND
    status_code = 404

class AmountMismatchError(SettlementError):
    reason = FailureReason.AMOUNT_MISMATCH

class UnknownGatewayError(SettlementError):
    reason = FailureReason.UNKNOWN_PROVIDER

class SnapshotError(SettlementError):
    """PendingPayment 의 cart/order 스냅샷을 해석할 수 없음"""
    reason = FailureReason.ORDER_NOT_FOUND
    status_code = 422

class CarrierError(Exception):
    """배송사 API 에러. retryable=True 인 경우만 Celery 재시도 대상"""

    def __init__(self, message, code=None, retryable=False):
        super().__init__(message)
        self.code = code
        self.retryable = retryable

class CarrierTransportError(CarrierError):
    def __init__(self, message, code='transport_error'):
        super().__init__(message, code=code, retryable=True)

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional

from flowpay.utils import to_decimal, utcnow

@dataclass(frozen=True)
class PaymentDetails:
    """주문에 저장되는 결제 메타데이터"""
    transaction_id: Optional[str] = None
    approval_number: Optional[str] = None
    card_last_four: Optional[str] = None
    card_brand: Optional[str] = None

@dataclass(frozen=True)
class SettlementSignal:
    success: bool
    provider: str
    status: str
    order_reference: Optional[str] = None
    request_id: Optional[str] = None
    payment: PaymentDetails = field(default_factory=PaymentDetails)
    amount: Decimal = Decimal('0.00')
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    # two-phase 게이트웨이: capture 전까지는 잠정 결과
    requires_capture: bool = False
    capture_token: Optional[str] = None
    raw: dict = field(default_factory=dict)

    @property
    def transaction_id(self):
        return self.payment.transaction_id

    def payment_snapshot(self):
        return {
            'provider': self.provider,
            'transaction_id': self.payment.transaction_id,
            'approval_number': self.payment.approval_number,
            'card_brand': self.payment.card_brand,
            'card_last_four': self.payment.card_last_four,
            'confirmed_at': utcnow().isoformat(),
        }

class GatewayNormalizer(ABC):
    """게이트웨이별 콜백 파라미터 -> SettlementSignal (I/O 없음)"""

    name = None
    two_phase = False

    @abstractmethod
    def normalize(self, params):
        raise NotImplementedError

    def failure(self, params, status='failed', error_code=None, error_message=None, **fields):
        return SettlementSignal(
            success=False,
            provider=self.name,
            status=status,
            error_code=error_code,
            error_message=error_message,
            raw=dict(params),
            **fields
        )

    @staticmethod
    def first(params, *keys):
        for key in keys:
            value = params.get(key)
            if value not in (None, ''):
                return str(value)
        return None

    @staticmethod
    def amount(value):
        try:
            return to_decimal(value)
        except ValueError:
            return Decimal('0.00')

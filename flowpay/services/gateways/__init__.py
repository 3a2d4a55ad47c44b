from flowpay.errors import UnknownGatewayError

from .base import GatewayNormalizer, PaymentDetails, SettlementSignal
from .payplus import PayPlusNormalizer
from .pelecard import PelecardNormalizer
from .payme import PayMeNormalizer
from .paypal import PayPalNormalizer

NORMALIZERS = {
    n.name: n for n in (PayPlusNormalizer(), PelecardNormalizer(), PayMeNormalizer(), PayPalNormalizer())
}

def get_normalizer(provider):
    normalizer = NORMALIZERS.get((provider or '').lower())
    if normalizer is None:
        raise UnknownGatewayError(f"Unknown payment provider: {provider}")
    return normalizer

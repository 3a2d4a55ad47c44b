import secrets
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal('0.01')

# 혼동되는 문자(0, O, 1, I) 제외
GIFT_CARD_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'

def utcnow():
    return datetime.now(timezone.utc)

def to_decimal(value, default=Decimal('0')):
    """숫자/문자열/None 을 2자리 Decimal 로 변환. float 는 str 경유."""
    if value is None or value == '':
        return default
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f"invalid money value: {value!r}")
    if not result.is_finite():
        raise ValueError(f"invalid money value: {value!r}")
    return result.quantize(CENT, rounding=ROUND_HALF_UP)

def clamp_balance(current, used):
    """잔액 차감 후 0 미만이면 0 으로 고정 (저장 전에 적용)"""
    new_balance = to_decimal(current) - to_decimal(used)
    if new_balance < 0:
        new_balance = Decimal('0.00')
    return new_balance.quantize(CENT)

def percent_of(total, rate):
    return (to_decimal(total) * Decimal(str(rate)) / Decimal('100')).quantize(CENT, rounding=ROUND_HALF_UP)

def money_str(value):
    return f"{to_decimal(value):.2f}"

def mask_card(last_four):
    if not last_four:
        return ''
    return f"**** {last_four}"

def generate_gift_card_code():
    raw = ''.join(secrets.choice(GIFT_CARD_ALPHABET) for _ in range(16))
    return '-'.join(raw[i:i + 4] for i in range(0, 16, 4))

def clean_reference(value):
    if value is None:
        return None
    value = str(value).strip().lstrip('#')
    return value or None

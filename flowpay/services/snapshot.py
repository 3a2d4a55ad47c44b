"""
PendingPayment 에 저장된 JSON 스냅샷(order_data / cart_items)을 타입이 있는 객체로 변환.

order_data 예시::

    {
        "order_reference": "1042",
        "customer": {"email": "a@b.com", "first_name": "Dana", "last_name": "Levi", "phone": "050..."},
        "shipping": {"method": "courier", "cost": "25.00", "address": {...}},
        "discount_details": [
            {"type": "coupon", "code": "SUMMER10", "amount": "10.00"},
            {"type": "auto", "discount_id": 3, "name": "2+1", "amount": "15.00"},
            {"type": "gift_card", "code": "ABCD-EFGH-JKLM-NPQR", "amount": "40.00"},
            {"type": "credit", "amount": "5.00"}
        ],
        "credit_used": "5.00",
        "tax": "0.00"
    }

cart_items 항목은 product_id, variant_id, name, quantity, price 에 선택적으로
addons, bundle_components, is_gift_card / gift_card_details 를 가진다.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from flowpay.constants import DiscountEntryType
from flowpay.errors import SnapshotError
from flowpay.utils import to_decimal

ZERO = Decimal('0.00')

def _optional_int(value, label):
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise SnapshotError(f"{label} is not an integer: {value!r}")

def _money(value, label):
    try:
        return to_decimal(value)
    except ValueError:
        raise SnapshotError(f"{label} is not a money value: {value!r}")

def _object(value, label):
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SnapshotError(f"{label} is not an object: {value!r}")
    return value

def _list(value, label):
    if value is None:
        return []
    if not isinstance(value, list):
        raise SnapshotError(f"{label} is not a list: {value!r}")
    return value

@dataclass(frozen=True)
class AddonSelection:
    name: str
    value: str = ''
    price_adjustment: Decimal = ZERO

@dataclass(frozen=True)
class BundlePart:
    product_id: int
    variant_id: Optional[int]
    name: str
    quantity: int

@dataclass(frozen=True)
class GiftCardPurchase:
    recipient_email: Optional[str]
    recipient_name: Optional[str] = None
    sender_name: Optional[str] = None
    message: Optional[str] = None

@dataclass(frozen=True)
class CartLine:
    index: int
    product_id: Optional[int]
    variant_id: Optional[int]
    name: str
    quantity: int
    price: Decimal
    variant_title: Optional[str] = None
    sku: Optional[str] = None
    image_url: Optional[str] = None
    addons: List[AddonSelection] = field(default_factory=list)
    addon_total: Decimal = ZERO
    bundle_parts: List[BundlePart] = field(default_factory=list)
    gift_card: Optional[GiftCardPurchase] = None

    @property
    def line_total(self):
        return ((self.price + self.addon_total) * self.quantity).quantize(Decimal('0.01'))

    @property
    def item_ref(self):
        """로그용 식별자"""
        if self.variant_id:
            return f"variant:{self.variant_id}"
        if self.product_id:
            return f"product:{self.product_id}"
        return f"line:{self.index}"

    def properties(self):
        props = {}
        if self.addons:
            props['addons'] = [
                {'name': a.name, 'value': a.value, 'price_adjustment': str(a.price_adjustment)}
                for a in self.addons
            ]
            props['addon_total'] = str(self.addon_total)
        if self.bundle_parts:
            props['bundle_components'] = [
                {'product_id': p.product_id, 'variant_id': p.variant_id, 'name': p.name, 'quantity': p.quantity}
                for p in self.bundle_parts
            ]
        if self.gift_card:
            props['gift_card'] = {
                'recipient_email': self.gift_card.recipient_email,
                'recipient_name': self.gift_card.recipient_name,
                'sender_name': self.gift_card.sender_name,
                'message': self.gift_card.message,
            }
        return props or None

    @classmethod
    def parse(cls, index, raw):
        if not isinstance(raw, dict):
            raise SnapshotError(f"cart line {index} is not an object")

        quantity = _optional_int(raw.get('quantity'), f"cart line {index} quantity")
        if not quantity or quantity <= 0:
            raise SnapshotError(f"cart line {index} has invalid quantity: {raw.get('quantity')!r}")

        addons = []
        for addon in _list(raw.get('addons'), f"cart line {index} addons"):
            addon = _object(addon, f"cart line {index} addon")
            addons.append(AddonSelection(
                name=str(addon.get('name', '')),
                value=str(addon.get('value', '')),
                price_adjustment=_money(addon.get('price_adjustment'), f"cart line {index} addon"),
            ))
        addon_total = raw.get('addon_total')
        if addon_total is None:
            addon_total = sum((a.price_adjustment for a in addons), ZERO)

        parts = []
        for part in _list(raw.get('bundle_components'), f"cart line {index} bundle_components"):
            part = _object(part, f"cart line {index} bundle component")
            part_product = _optional_int(part.get('product_id'), f"cart line {index} bundle product")
            if part_product is None:
                raise SnapshotError(f"cart line {index} bundle component without product_id")
            parts.append(BundlePart(
                product_id=part_product,
                variant_id=_optional_int(part.get('variant_id'), f"cart line {index} bundle variant"),
                name=str(part.get('name', '')),
                quantity=_optional_int(part.get('quantity'), f"cart line {index} bundle quantity") or 1,
            ))

        gift_card = None
        details = raw.get('gift_card_details')
        if raw.get('is_gift_card') and isinstance(details, dict):
            gift_card = GiftCardPurchase(
                recipient_email=details.get('recipient_email'),
                recipient_name=details.get('recipient_name'),
                sender_name=details.get('sender_name'),
                message=details.get('message'),
            )

        return cls(
            index=index,
            product_id=_optional_int(raw.get('product_id'), f"cart line {index} product_id"),
            variant_id=_optional_int(raw.get('variant_id'), f"cart line {index} variant_id"),
            name=str(raw.get('name') or 'Item'),
            quantity=quantity,
            price=_money(raw.get('price'), f"cart line {index} price"),
            variant_title=raw.get('variant_title'),
            sku=raw.get('sku'),
            image_url=raw.get('image_url'),
            addons=addons,
            addon_total=_money(addon_total, f"cart line {index} addon_total"),
            bundle_parts=parts,
            gift_card=gift_card,
        )

@dataclass(frozen=True)
class DiscountEntry:
    type: str
    amount: Decimal
    code: Optional[str] = None
    name: Optional[str] = None
    discount_id: Optional[int] = None

    @classmethod
    def parse(cls, raw):
        if not isinstance(raw, dict):
            raise SnapshotError("discount entry is not an object")
        entry_type = raw.get('type')
        if entry_type not in DiscountEntryType.ALL:
            raise SnapshotError(f"unknown discount entry type: {entry_type!r}")
        entry = cls(
            type=entry_type,
            amount=_money(raw.get('amount'), f"{entry_type} discount amount"),
            code=raw.get('code'),
            name=raw.get('name'),
            discount_id=_optional_int(raw.get('discount_id'), f"{entry_type} discount_id"),
        )
        if entry_type in (DiscountEntryType.COUPON, DiscountEntryType.GIFT_CARD) and not entry.code:
            raise SnapshotError(f"{entry_type} discount entry without code")
        if entry_type == DiscountEntryType.AUTO and entry.discount_id is None:
            raise SnapshotError("auto discount entry without discount_id")
        return entry

    def to_dict(self):
        data = {'type': self.type, 'amount': str(self.amount)}
        if self.code:
            data['code'] = self.code
        if self.name:
            data['name'] = self.name
        if self.discount_id is not None:
            data['discount_id'] = self.discount_id
        return data

@dataclass(frozen=True)
class ShippingInfo:
    method: Optional[str] = None
    cost: Decimal = ZERO
    address: Optional[dict] = None

@dataclass(frozen=True)
class CustomerInfo:
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None

    @property
    def full_name(self):
        return ' '.join(p for p in [self.first_name, self.last_name] if p) or None

@dataclass(frozen=True)
class OrderSnapshot:
    lines: List[CartLine]
    discounts: List[DiscountEntry]
    customer: CustomerInfo
    shipping: ShippingInfo
    coupon_code: Optional[str] = None
    discount_total: Decimal = ZERO
    credit_used: Decimal = ZERO
    tax: Decimal = ZERO
    order_reference: Optional[str] = None
    skipped_lines: List[str] = field(default_factory=list)

    @property
    def subtotal(self):
        return sum((line.line_total for line in self.lines), ZERO)

    @property
    def total(self):
        total = self.subtotal + self.shipping.cost - self.discount_total - self.credit_used
        return max(total, ZERO).quantize(Decimal('0.01'))

    @property
    def auto_discount_ids(self):
        return [d.discount_id for d in self.discounts if d.type == DiscountEntryType.AUTO]

    @property
    def gift_card_redemptions(self):
        return [(d.code, d.amount) for d in self.discounts
                if d.type == DiscountEntryType.GIFT_CARD and d.amount > 0]

    @property
    def gift_card_purchases(self):
        return [line for line in self.lines if line.gift_card is not None]

    @classmethod
    def from_pending(cls, pending):
        order_data = pending.order_data or {}
        cart_items = pending.cart_items
        if not isinstance(order_data, dict):
            raise SnapshotError(f"pending payment {pending.id}: order_data is not an object")
        if not isinstance(cart_items, list) or not cart_items:
            raise SnapshotError(f"pending payment {pending.id}: cart snapshot is empty")

        lines, skipped_lines = [], []
        for i, raw in enumerate(cart_items):
            # 잘못된 라인은 건너뛰고 기록 (나머지 원장 단계는 계속 진행)
            try:
                lines.append(CartLine.parse(i, raw))
            except SnapshotError as e:
                skipped_lines.append(str(e))
        if not lines:
            raise SnapshotError(
                f"pending payment {pending.id}: no valid cart lines ({'; '.join(skipped_lines)})"
            )
        discounts = [DiscountEntry.parse(raw) for raw in _list(order_data.get('discount_details'), 'discount_details')]

        # 이전 형식: gift_card_code / gift_card_amount 단일 필드
        legacy_code = order_data.get('gift_card_code')
        if legacy_code and not any(d.type == DiscountEntryType.GIFT_CARD for d in discounts):
            discounts.append(DiscountEntry(
                type=DiscountEntryType.GIFT_CARD,
                code=legacy_code,
                amount=_money(order_data.get('gift_card_amount'), 'gift_card_amount'),
            ))

        coupon_code = pending.discount_code or next(
            (d.code for d in discounts if d.type == DiscountEntryType.COUPON), None)

        credit_used = order_data.get('credit_used')
        if credit_used is None:
            credit_used = sum((d.amount for d in discounts if d.type == DiscountEntryType.CREDIT), ZERO)

        if pending.discount_amount:
            discount_total = to_decimal(pending.discount_amount)
        else:
            discount_total = sum((d.amount for d in discounts if d.type != DiscountEntryType.CREDIT), ZERO)

        customer = _object(order_data.get('customer'), 'customer')
        shipping = _object(order_data.get('shipping'), 'shipping')

        return cls(
            lines=lines,
            discounts=discounts,
            customer=CustomerInfo(
                email=customer.get('email') or pending.customer_email,
                first_name=customer.get('first_name'),
                last_name=customer.get('last_name'),
                phone=customer.get('phone'),
            ),
            shipping=ShippingInfo(
                method=shipping.get('method'),
                cost=_money(shipping.get('cost'), 'shipping cost'),
                address=_object(shipping.get('address'), 'shipping address') or None,
            ),
            coupon_code=coupon_code,
            discount_total=to_decimal(discount_total),
            credit_used=_money(credit_used, 'credit_used'),
            tax=_money(order_data.get('tax'), 'tax'),
            order_reference=order_data.get('order_reference'),
            skipped_lines=skipped_lines,
        )

class OrderStatus:
    """주문 상태 상수"""
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    PROCESSING = 'processing'
    CANCELLED = 'cancelled'

class FinancialStatus:
    """결제 상태 상수 (pending -> paid 는 TransitionGuard 만 변경)"""
    PENDING = 'pending'
    PAID = 'paid'
    REFUNDED = 'refunded'

class FulfillmentStatus:
    UNFULFILLED = 'unfulfilled'
    FULFILLED = 'fulfilled'

class PendingPaymentStatus:
    PENDING = 'pending'
    COMPLETED = 'completed'
    FAILED = 'failed'
    EXPIRED = 'expired'

class TransactionStatus:
    PENDING = 'pending'
    SUCCESS = 'success'
    FAILED = 'failed'

class InventoryReason:
    """재고 변동 사유 (InventoryLog용)"""
    ORDER = 'order'
    MANUAL = 'manual'
    RETURN = 'return'
    RESTOCK = 'restock'

class GiftCardStatus:
    ACTIVE = 'active'
    USED = 'used'
    DISABLED = 'disabled'
    EXPIRED = 'expired'

class CreditTransactionType:
    DEBIT = 'debit'
    CREDIT = 'credit'
    REFUND = 'refund'
    ADJUSTMENT = 'adjustment'

class CommissionType:
    PERCENTAGE = 'percentage'
    FIXED_AMOUNT = 'fixed_amount'

class DiscountEntryType:
    """주문 discount_details 항목 유형"""
    COUPON = 'coupon'
    AUTO = 'auto'
    GIFT_CARD = 'gift_card'
    CREDIT = 'credit'
    MEMBER = 'member'
    LOYALTY_TIER = 'loyalty_tier'

    ALL = [COUPON, AUTO, GIFT_CARD, CREDIT, MEMBER, LOYALTY_TIER]

class ShipmentStatus:
    CREATED = 'created'
    FAILED = 'failed'

class EventType:
    ORDER_CREATED = 'order.created'
    LOW_STOCK = 'product.low_stock'
    OUT_OF_STOCK = 'product.out_of_stock'

class LedgerStep:
    """LedgerOrchestrator 단계 이름 (로그/리포트 키)"""
    INVENTORY = 'inventory'
    DISCOUNT_USAGE = 'discount_usage'
    GIFT_CARD_REDEMPTION = 'gift_card_redemption'
    STORE_CREDIT = 'store_credit'
    AFFILIATE_COMMISSION = 'affiliate_commission'
    CUSTOMER_STATS = 'customer_stats'
    GIFT_CARD_ISSUE = 'gift_card_issue'

    ALL = [INVENTORY, DISCOUNT_USAGE, GIFT_CARD_REDEMPTION, STORE_CREDIT,
           AFFILIATE_COMMISSION, CUSTOMER_STATS, GIFT_CARD_ISSUE]

class FailureReason:
    """체크아웃 에러 리다이렉트용 reason 코드"""
    PAYMENT_FAILED = 'payment_failed'
    PAYPAL_CAPTURE_FAILED = 'paypal_capture_failed'
    ORDER_NOT_FOUND = 'order_not_found'
    AMOUNT_MISMATCH = 'amount_mismatch'
    UNKNOWN_PROVIDER = 'unknown_provider'

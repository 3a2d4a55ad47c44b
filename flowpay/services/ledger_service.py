from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional

from flask import current_app
from sqlalchemy import update

from flowpay.constants import (
    CommissionType, CreditTransactionType, GiftCardStatus, InventoryReason, LedgerStep
)
from flowpay.extensions import db
from flowpay.models import (
    AutomaticDiscount, Customer, CustomerCreditTransaction, Discount, GiftCard,
    GiftCardTransaction, Influencer, InfluencerSale, InventoryLog, Product, ProductVariant
)
from flowpay.utils import clamp_balance, generate_gift_card_code, percent_of, to_decimal, utcnow

GIFT_CARD_VALIDITY_DAYS = 365
GIFT_CARD_CODE_ATTEMPTS = 5

class StepStatus:
    OK = 'ok'
    SKIPPED = 'skipped'
    PARTIAL = 'partial'
    FAILED = 'failed'

@dataclass
class StepOutcome:
    status: str
    error: Optional[str] = None
    failed_items: List[str] = field(default_factory=list)

@dataclass
class LedgerReport:
    order_id: int
    steps: dict = field(default_factory=dict)
    issued_gift_card_ids: List[int] = field(default_factory=list)

    @property
    def ok(self):
        return all(s.status in (StepStatus.OK, StepStatus.SKIPPED) for s in self.steps.values())

    @property
    def failed_steps(self):
        return [name for name, s in self.steps.items() if s.status in (StepStatus.FAILED, StepStatus.PARTIAL)]

    def to_dict(self):
        return {name: s.status for name, s in self.steps.items()}

class LedgerOrchestrator:
    """
    정산 승자(TransitionGuard 에서 won=True) 만 실행하는 원장 업데이트.

    각 단계는 독립적으로 커밋되며, 한 단계의 실패는 롤백 후 로그만 남기고
    다음 단계를 계속 진행한다. 이미 커밋된 결제 전환은 되돌리지 않는다.
    """

    def __init__(self, order, snapshot):
        # rollback 후 만료된 속성 재조회를 피하기 위해 자주 쓰는 값은 미리 보관
        self.order = order
        self.order_id = order.id
        self.order_number = order.order_number
        self.store_id = order.store_id
        self.snapshot = snapshot
        self.report = LedgerReport(order_id=order.id)

    def run(self):
        steps = [
            (LedgerStep.INVENTORY, self.decrement_inventory),
            (LedgerStep.DISCOUNT_USAGE, self.increment_discount_usage),
            (LedgerStep.GIFT_CARD_REDEMPTION, self.redeem_gift_cards),
            (LedgerStep.STORE_CREDIT, self.debit_store_credit),
            (LedgerStep.AFFILIATE_COMMISSION, self.record_affiliate_commission),
            (LedgerStep.CUSTOMER_STATS, self.update_customer_stats),
            (LedgerStep.GIFT_CARD_ISSUE, self.issue_gift_cards),
        ]
        for name, step in steps:
            self._run_step(name, step)

        if self.report.ok:
            current_app.logger.info(f"Ledger completed for order {self.order_number} (id={self.order_id})")
        else:
            current_app.logger.warning(
                f"Ledger completed with failures for order {self.order_number} (id={self.order_id}): "
                f"{', '.join(self.report.failed_steps)}"
            )
        return self.report

    def _run_step(self, name, step):
        try:
            outcome = step()
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(
                f"Ledger step failed order={self.order_id} step={name}: {e}", exc_info=True
            )
            outcome = StepOutcome(StepStatus.FAILED, error=str(e))
        self.report.steps[name] = outcome

    def _item_failed(self, step, item_ref, error):
        current_app.logger.error(
            f"Ledger item failed order={self.order_id} step={step} item={item_ref}: {error}", exc_info=True
        )

    # 1. 재고 차감 ----------------------------------------------------------

    def decrement_inventory(self):
        failed = []
        touched = False
        for line in self.snapshot.lines:
            if line.product_id is None:
                current_app.logger.warning(
                    f"Skipping inventory for order={self.order_id} item={line.item_ref}: missing product_id"
                )
                continue
            try:
                self._decrement_line(line)
                db.session.commit()
                touched = True
            except Exception as e:
                db.session.rollback()
                self._item_failed(LedgerStep.INVENTORY, line.item_ref, e)
                failed.append(line.item_ref)

        if failed:
            status = StepStatus.PARTIAL if touched else StepStatus.FAILED
            return StepOutcome(status, error='item failures', failed_items=failed)
        return StepOutcome(StepStatus.OK if touched else StepStatus.SKIPPED)

    def _decrement_line(self, line):
        product = Product.query.filter_by(id=line.product_id, store_id=self.store_id).first()
        if product is None:
            current_app.logger.warning(
                f"Skipping inventory for order={self.order_id} item={line.item_ref}: product not found"
            )
            return

        if product.is_bundle:
            # 번들 상품은 자체 재고 대신 구성품 재고를 차감
            components = [(c.product_id, c.variant_id, c.quantity) for c in product.bundle_components]
            if not components:
                components = [(p.product_id, p.variant_id, p.quantity) for p in line.bundle_parts]
            for product_id, variant_id, per_bundle in components:
                self._decrement_stock(
                    product_id, variant_id, per_bundle * line.quantity,
                    changed_by=f"Bundle #{product.id} ({line.quantity}x)"
                )
            return

        self._decrement_stock(product.id, line.variant_id, line.quantity, changed_by='Order')

    def _decrement_stock(self, product_id, variant_id, quantity, changed_by):
        if variant_id:
            row = ProductVariant.query.join(Product, ProductVariant.product_id == Product.id).filter(
                ProductVariant.id == variant_id,
                ProductVariant.product_id == product_id,
                Product.store_id == self.store_id,
            ).with_for_update(of=ProductVariant).populate_existing().first()
        else:
            row = Product.query.filter_by(id=product_id, store_id=self.store_id).with_for_update().populate_existing().first()

        if row is None:
            current_app.logger.warning(
                f"Stock row not found order={self.order_id} product={product_id} variant={variant_id}"
            )
            return
        if row.inventory is None:
            return

        previous = row.inventory
        new_quantity = max(0, previous - quantity)
        if new_quantity == previous:
            if quantity > 0:
                current_app.logger.warning(
                    f"Oversold order={self.order_id} product={product_id} variant={variant_id}: stock already 0"
                )
            return

        row.inventory = new_quantity
        db.session.add(InventoryLog(
            store_id=self.store_id,
            product_id=product_id,
            variant_id=variant_id,
            previous_quantity=previous,
            new_quantity=new_quantity,
            change_amount=new_quantity - previous,
            reason=InventoryReason.ORDER,
            order_id=self.order_id,
            changed_by_name=changed_by,
            note=f"Order #{self.order_number}",
        ))

    # 2. 할인 사용 횟수 -----------------------------------------------------

    def increment_discount_usage(self):
        code = self.snapshot.coupon_code
        auto_ids = self.snapshot.auto_discount_ids
        if not code and not auto_ids:
            return StepOutcome(StepStatus.SKIPPED)

        if code:
            result = db.session.execute(
                update(Discount)
                .where(Discount.store_id == self.store_id, Discount.code == code)
                .values(usage_count=Discount.usage_count + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                current_app.logger.warning(f"Discount code {code} not found for order={self.order_id}")

        for discount_id in auto_ids:
            db.session.execute(
                update(AutomaticDiscount)
                .where(AutomaticDiscount.id == discount_id, AutomaticDiscount.store_id == self.store_id)
                .values(usage_count=AutomaticDiscount.usage_count + 1)
                .execution_options(synchronize_session=False)
            )
        return StepOutcome(StepStatus.OK)

    # 3. 기프트카드 사용 ----------------------------------------------------

    def redeem_gift_cards(self):
        redemptions = self.snapshot.gift_card_redemptions
        if not redemptions:
            return StepOutcome(StepStatus.SKIPPED)

        now = utcnow()
        for code, amount in redemptions:
            card = GiftCard.query.filter_by(
                store_id=self.store_id, code=code.strip().upper()
            ).with_for_update().populate_existing().first()
            if card is None or card.status != GiftCardStatus.ACTIVE:
                # 체크아웃 시 이미 검증됨. 비활성/삭제된 카드는 조용히 건너뜀
                current_app.logger.info(
                    f"Gift card {code} not redeemable for order={self.order_id}, skipping"
                )
                continue

            current = to_decimal(card.current_balance)
            new_balance = clamp_balance(current, amount)
            card.current_balance = new_balance
            card.last_used_at = now
            if new_balance == 0:
                card.status = GiftCardStatus.USED

            db.session.add(GiftCardTransaction(
                store_id=self.store_id,
                gift_card_id=card.id,
                order_id=self.order_id,
                amount=new_balance - current,
                balance_after=new_balance,
                note=f"Order #{self.order_number}",
            ))
        return StepOutcome(StepStatus.OK)

    # 4. 적립금 차감 --------------------------------------------------------

    def debit_store_credit(self):
        credit_used = self.snapshot.credit_used
        customer_id = self.order.customer_id
        if credit_used <= 0 or not customer_id:
            return StepOutcome(StepStatus.SKIPPED)

        customer = Customer.query.filter_by(id=customer_id, store_id=self.store_id).with_for_update().populate_existing().first()
        if customer is None:
            current_app.logger.warning(f"Customer {customer_id} not found for credit debit order={self.order_id}")
            return StepOutcome(StepStatus.SKIPPED)

        current = to_decimal(customer.credit_balance)
        new_balance = clamp_balance(current, credit_used)
        customer.credit_balance = new_balance
        db.session.add(CustomerCreditTransaction(
            store_id=self.store_id,
            customer_id=customer.id,
            order_id=self.order_id,
            type=CreditTransactionType.DEBIT,
            amount=new_balance - current,
            balance_after=new_balance,
            reason=f"Used on order #{self.order_number}",
        ))
        return StepOutcome(StepStatus.OK)

    # 5. 인플루언서 커미션 --------------------------------------------------

    def find_linked_influencer(self, discount_id):
        for influencer in Influencer.query.filter_by(store_id=self.store_id, is_active=True).all():
            if discount_id in (influencer.discount_ids or []):
                return influencer
        return None

    @staticmethod
    def compute_commission(influencer, order_total):
        value = to_decimal(influencer.commission_value)
        if influencer.commission_type == CommissionType.PERCENTAGE:
            return percent_of(order_total, value)
        return value

    def record_affiliate_commission(self):
        code = self.snapshot.coupon_code
        if not code:
            return StepOutcome(StepStatus.SKIPPED)

        discount = Discount.query.filter_by(store_id=self.store_id, code=code).first()
        if discount is None:
            return StepOutcome(StepStatus.SKIPPED)

        linked = self.find_linked_influencer(discount.id)
        if linked is None:
            return StepOutcome(StepStatus.SKIPPED)

        if InfluencerSale.query.filter_by(order_id=self.order_id).first():
            current_app.logger.warning(f"Influencer sale already recorded for order={self.order_id}")
            return StepOutcome(StepStatus.SKIPPED)

        influencer = Influencer.query.filter_by(id=linked.id).with_for_update().populate_existing().first()
        order_total = to_decimal(self.order.total)
        commission = self.compute_commission(influencer, order_total)

        db.session.add(InfluencerSale(
            store_id=self.store_id,
            influencer_id=influencer.id,
            order_id=self.order_id,
            order_total=order_total,
            commission_amount=commission,
            net_commission=commission,
        ))
        influencer.total_sales = to_decimal(influencer.total_sales) + order_total
        influencer.total_commission = to_decimal(influencer.total_commission) + commission
        influencer.total_orders = (influencer.total_orders or 0) + 1
        self.order.influencer_id = influencer.id
        return StepOutcome(StepStatus.OK)

    # 6. 고객 통계 ----------------------------------------------------------

    def update_customer_stats(self):
        customer_id = self.order.customer_id
        if not customer_id:
            return StepOutcome(StepStatus.SKIPPED)

        db.session.execute(
            update(Customer)
            .where(Customer.id == customer_id, Customer.store_id == self.store_id)
            .values(
                total_orders=Customer.total_orders + 1,
                total_spent=Customer.total_spent + to_decimal(self.order.total),
            )
            .execution_options(synchronize_session=False)
        )
        return StepOutcome(StepStatus.OK)

    # 7. 구매한 기프트카드 발급 ---------------------------------------------

    def _unique_gift_card_code(self):
        for _ in range(GIFT_CARD_CODE_ATTEMPTS):
            code = generate_gift_card_code()
            if not GiftCard.query.filter_by(store_id=self.store_id, code=code).first():
                return code
        raise RuntimeError('could not generate a unique gift card code')

    def issue_gift_cards(self):
        purchases = self.snapshot.gift_card_purchases
        if not purchases:
            return StepOutcome(StepStatus.SKIPPED)

        expires_at = utcnow() + timedelta(days=GIFT_CARD_VALIDITY_DAYS)
        cards = []
        for line in purchases:
            value = to_decimal(line.price)
            if value <= Decimal('0'):
                continue
            for _ in range(line.quantity):
                card = GiftCard(
                    store_id=self.store_id,
                    code=self._unique_gift_card_code(),
                    initial_balance=value,
                    current_balance=value,
                    status=GiftCardStatus.ACTIVE,
                    recipient_email=line.gift_card.recipient_email,
                    recipient_name=line.gift_card.recipient_name,
                    sender_name=line.gift_card.sender_name,
                    message=line.gift_card.message,
                    order_id=self.order_id,
                    expires_at=expires_at,
                )
                db.session.add(card)
                cards.append(card)

        db.session.commit()
        self.report.issued_gift_card_ids.extend(c.id for c in cards)
        return StepOutcome(StepStatus.OK if cards else StepStatus.SKIPPED)

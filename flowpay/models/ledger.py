from . import db
from flowpay.constants import GiftCardStatus, CommissionType

class Discount(db.Model):
    __tablename__ = 'discounts'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    code = db.Column(db.String(50), nullable=False)
    discount_type = db.Column(db.String(20), nullable=False, default='percentage')
    value = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    usage_count = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    __table_args__ = (
        db.UniqueConstraint('store_id', 'code', name='uq_store_discount_code'),
    )

class AutomaticDiscount(db.Model):
    __tablename__ = 'automatic_discounts'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    discount_type = db.Column(db.String(20), nullable=False, default='percentage')
    value = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    usage_count = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

class GiftCard(db.Model):
    """current_balance == initial_balance + sum(transactions.amount), 항상 0 이상"""
    __tablename__ = 'gift_cards'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    code = db.Column(db.String(30), nullable=False)
    initial_balance = db.Column(db.Numeric(10, 2), nullable=False)
    current_balance = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=GiftCardStatus.ACTIVE)

    recipient_email = db.Column(db.String(255), nullable=True)
    recipient_name = db.Column(db.String(200), nullable=True)
    sender_name = db.Column(db.String(200), nullable=True)
    message = db.Column(db.Text, nullable=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=True)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())

    transactions = db.relationship('GiftCardTransaction', backref='gift_card', lazy='dynamic',
                                   cascade='all, delete-orphan')

    __table_args__ = (
        db.UniqueConstraint('store_id', 'code', name='uq_store_gift_card_code'),
    )

class GiftCardTransaction(db.Model):
    __tablename__ = 'gift_card_transactions'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    gift_card_id = db.Column(db.Integer, db.ForeignKey('gift_cards.id'), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    balance_after = db.Column(db.Numeric(10, 2), nullable=False)
    note = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())

class CustomerCreditTransaction(db.Model):
    __tablename__ = 'customer_credit_transactions'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=True)
    type = db.Column(db.String(20), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    balance_after = db.Column(db.Numeric(10, 2), nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())

class Influencer(db.Model):
    __tablename__ = 'influencers'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(255), nullable=True)

    commission_type = db.Column(db.String(20), nullable=False, default=CommissionType.PERCENTAGE)
    commission_value = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    # 연결된 Discount.id 목록
    discount_ids = db.Column(db.JSON, nullable=False, default=list)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # 집계값 == InfluencerSale 행 합계
    total_sales = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_commission = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_orders = db.Column(db.Integer, nullable=False, default=0)

    sales = db.relationship('InfluencerSale', backref='influencer', lazy='dynamic')

class InfluencerSale(db.Model):
    __tablename__ = 'influencer_sales'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    influencer_id = db.Column(db.Integer, db.ForeignKey('influencers.id'), nullable=False, index=True)
    # 주문당 최대 1행
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, unique=True)
    order_total = db.Column(db.Numeric(10, 2), nullable=False)
    commission_amount = db.Column(db.Numeric(10, 2), nullable=False)
    net_commission = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default='pending')
    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())

from . import db
from flowpay.constants import PendingPaymentStatus, TransactionStatus

class PendingPayment(db.Model):
    """체크아웃 시작 시 생성되는 결제 대기 레코드 (주문이 없을 때의 멱등성 기준점)"""
    __tablename__ = 'pending_payments'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    provider = db.Column(db.String(30), nullable=False)
    provider_request_id = db.Column(db.String(255), nullable=True)

    # 체크아웃 시점의 스냅샷 (services/snapshot.py 에서 해석)
    order_data = db.Column(db.JSON, nullable=False, default=dict)
    cart_items = db.Column(db.JSON, nullable=False, default=list)

    customer_email = db.Column(db.String(255), nullable=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default='ILS')

    discount_code = db.Column(db.String(50), nullable=True)
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    influencer_id = db.Column(db.Integer, db.ForeignKey('influencers.id'), nullable=True)

    status = db.Column(db.String(20), nullable=False, default=PendingPaymentStatus.PENDING, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=True)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())

    order = db.relationship('Order', foreign_keys=[order_id])

    __table_args__ = (
        db.UniqueConstraint('store_id', 'provider_request_id', name='uq_store_provider_request'),
    )

    @property
    def order_reference(self):
        return (self.order_data or {}).get('order_reference')

class PaymentTransaction(db.Model):
    """게이트웨이 시도 1건당 1행. 콜백 결과(원본 payload 포함) 기록용"""
    __tablename__ = 'payment_transactions'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    pending_payment_id = db.Column(db.Integer, db.ForeignKey('pending_payments.id'), nullable=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=True)

    provider = db.Column(db.String(30), nullable=False)
    provider_request_id = db.Column(db.String(255), nullable=True, index=True)
    provider_transaction_id = db.Column(db.String(255), nullable=True)
    provider_approval_num = db.Column(db.String(50), nullable=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default='ILS')
    status = db.Column(db.String(20), nullable=False, default=TransactionStatus.PENDING)
    error_code = db.Column(db.String(50), nullable=True)
    error_message = db.Column(db.Text, nullable=True)
    provider_response = db.Column(db.JSON, nullable=True)

    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())

from . import db
from flowpay.constants import OrderStatus, FinancialStatus, FulfillmentStatus

class Order(db.Model):
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    order_number = db.Column(db.String(20), nullable=False)

    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=True, index=True)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_name = db.Column(db.String(200), nullable=True)
    customer_phone = db.Column(db.String(50), nullable=True)

    status = db.Column(db.String(20), nullable=False, default=OrderStatus.PENDING)
    financial_status = db.Column(db.String(20), nullable=False, default=FinancialStatus.PENDING, index=True)
    fulfillment_status = db.Column(db.String(20), nullable=False, default=FulfillmentStatus.UNFULFILLED)

    currency = db.Column(db.String(3), nullable=False, default='ILS')
    subtotal = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount_code = db.Column(db.String(50), nullable=True)
    discount_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    discount_details = db.Column(db.JSON, nullable=True)
    credit_used = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    shipping_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    shipping_method = db.Column(db.String(100), nullable=True)
    shipping_address = db.Column(db.JSON, nullable=True)

    payment_method = db.Column(db.String(50), nullable=True)
    payment_details = db.Column(db.JSON, nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    influencer_id = db.Column(db.Integer, db.ForeignKey('influencers.id'), nullable=True)
    note = db.Column(db.Text, nullable=True)

    # 자동 발송 실패 기록 (재시도는 운영자가 수동 처리)
    shipment_error = db.Column(db.Text, nullable=True)
    shipment_error_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), onupdate=db.func.now())

    store = db.relationship('Store', backref=db.backref('orders', lazy='dynamic'))
    customer = db.relationship('Customer', backref=db.backref('orders', lazy='dynamic'))
    items = db.relationship('OrderItem', backref='order', cascade='all, delete-orphan',
                            order_by='OrderItem.id')

    __table_args__ = (
        db.UniqueConstraint('store_id', 'order_number', name='uq_store_order_number'),
    )

    @property
    def is_paid(self):
        return self.financial_status == FinancialStatus.PAID

class OrderItem(db.Model):
    __tablename__ = 'order_items'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=True)
    variant_id = db.Column(db.Integer, db.ForeignKey('product_variants.id'), nullable=True)

    name = db.Column(db.String(200), nullable=False)
    variant_title = db.Column(db.String(200), nullable=True)
    sku = db.Column(db.String(100), nullable=True)
    image_url = db.Column(db.String(500), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    total = db.Column(db.Numeric(10, 2), nullable=False)

    # addons, bundle 구성, 기프트카드 수령인 등
    properties = db.Column(db.JSON, nullable=True)

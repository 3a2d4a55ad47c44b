from . import db

class Product(db.Model):
    __tablename__ = 'products'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    sku = db.Column(db.String(100), nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    # None 이면 재고 미관리 상품
    inventory = db.Column(db.Integer, nullable=True)

    is_bundle = db.Column(db.Boolean, default=False, nullable=False)
    is_gift_card = db.Column(db.Boolean, default=False, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), onupdate=db.func.now())

    variants = db.relationship('ProductVariant', backref='product', cascade='all, delete-orphan')
    bundle_components = db.relationship(
        'BundleComponent', backref='bundle_product', cascade='all, delete-orphan',
        foreign_keys='BundleComponent.bundle_product_id'
    )

class ProductVariant(db.Model):
    __tablename__ = 'product_variants'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    sku = db.Column(db.String(100), nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=True)
    inventory = db.Column(db.Integer, nullable=True)

class BundleComponent(db.Model):
    __tablename__ = 'bundle_components'

    id = db.Column(db.Integer, primary_key=True)
    bundle_product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False)
    variant_id = db.Column(db.Integer, db.ForeignKey('product_variants.id'), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    product = db.relationship('Product', foreign_keys=[product_id])

class InventoryLog(db.Model):
    """재고 변동 원장. 재고 변경 1건당 정확히 1행, 수정 금지"""
    __tablename__ = 'inventory_logs'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey('product_variants.id'), nullable=True)

    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)
    change_amount = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.String(20), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)
    changed_by_name = db.Column(db.String(100), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())

class WaitlistEntry(db.Model):
    __tablename__ = 'waitlist_entries'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey('product_variants.id'), nullable=True)
    email = db.Column(db.String(255), nullable=False)
    is_notified = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())

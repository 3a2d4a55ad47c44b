from . import db
from flowpay.constants import ShipmentStatus

class ShippingProvider(db.Model):
    __tablename__ = 'shipping_providers'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    provider = db.Column(db.String(30), nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    is_default = db.Column(db.Boolean, default=False, nullable=False)
    # credentials, auto_send_on_payment, sender_*, default_package
    settings = db.Column(db.JSON, nullable=False, default=dict)

    __table_args__ = (
        db.UniqueConstraint('store_id', 'provider', name='uq_store_shipping_provider'),
    )

class Shipment(db.Model):
    __tablename__ = 'shipments'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey('orders.id'), nullable=False, index=True)
    provider = db.Column(db.String(30), nullable=False)
    provider_shipment_id = db.Column(db.String(100), nullable=True)
    tracking_number = db.Column(db.String(100), nullable=True)
    label_url = db.Column(db.String(500), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=ShipmentStatus.CREATED)
    recipient = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())

import json
from . import db

class Store(db.Model):
    __tablename__ = 'stores'

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(100), unique=True, nullable=False, index=True)
    store_name = db.Column(db.String(100), nullable=False)
    contact_email = db.Column(db.String(255), nullable=True)
    currency = db.Column(db.String(3), nullable=False, default='ILS')

    # 다음 주문 번호 (FallbackOrderBuilder 가 행 잠금 후 증가)
    order_counter = db.Column(db.Integer, nullable=False, default=1000)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())

    settings = db.relationship('Setting', backref='store', lazy='dynamic', cascade='all, delete-orphan')

    def get_setting(self, key, default=None):
        setting = Setting.query.filter_by(store_id=self.id, key=key).first()
        if not setting or setting.value is None:
            return default
        return setting.value

    def get_json_setting(self, key, default=None):
        raw = self.get_setting(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            return default

class Setting(db.Model):
    __tablename__ = 'settings'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    key = db.Column(db.String(100), nullable=False)
    value = db.Column(db.Text, nullable=True)

    __table_args__ = (
        db.UniqueConstraint('store_id', 'key', name='uq_store_setting_key'),
    )

class Customer(db.Model):
    __tablename__ = 'customers'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    email = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(50), nullable=True)

    credit_balance = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_orders = db.Column(db.Integer, nullable=False, default=0)
    total_spent = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())

    __table_args__ = (
        db.UniqueConstraint('store_id', 'email', name='uq_store_customer_email'),
    )

    @property
    def full_name(self):
        return ' '.join(p for p in [self.first_name, self.last_name] if p) or None

class StoreEvent(db.Model):
    """대시보드/푸시 알림용 도메인 이벤트"""
    __tablename__ = 'store_events'

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey('stores.id'), nullable=False, index=True)
    event_type = db.Column(db.String(50), nullable=False, index=True)
    resource_type = db.Column(db.String(50), nullable=True)
    resource_id = db.Column(db.Integer, nullable=True)
    data = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=db.func.now())

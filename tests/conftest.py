import os

os.environ.setdefault('SECRET_KEY', 'test-secret-key')

from decimal import Decimal

import pytest

from flowpay import create_app
from flowpay.config import TestConfig
from flowpay.constants import FinancialStatus, OrderStatus
from flowpay.extensions import db
from flowpay.models import (
    Customer, Discount, GiftCard, Influencer, Order, OrderItem, PendingPayment,
    Product, ProductVariant, Store
)

@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture
def client(app):
    return app.test_client()

@pytest.fixture
def store(app):
    store = Store(slug='demo', store_name='Demo Shop', currency='ILS', order_counter=1000)
    db.session.add(store)
    db.session.commit()
    return store

@pytest.fixture
def product(store):
    product = Product(store_id=store.id, name='Cotton Tee', sku='TEE-1', price=Decimal('50.00'), inventory=5)
    db.session.add(product)
    db.session.commit()
    return product

@pytest.fixture
def make_product(store):
    def _make(name='Item', inventory=10, price='20.00', **kwargs):
        p = Product(store_id=store.id, name=name, price=Decimal(price), inventory=inventory, **kwargs)
        db.session.add(p)
        db.session.commit()
        return p
    return _make

@pytest.fixture
def make_variant():
    def _make(product, title='M', inventory=10):
        v = ProductVariant(product_id=product.id, title=title, inventory=inventory)
        db.session.add(v)
        db.session.commit()
        return v
    return _make

@pytest.fixture
def make_customer(store):
    def _make(email='dana@example.com', credit_balance='0'):
        c = Customer(store_id=store.id, email=email, first_name='Dana', last_name='Levi',
                     credit_balance=Decimal(credit_balance), total_orders=0, total_spent=Decimal('0'))
        db.session.add(c)
        db.session.commit()
        return c
    return _make

@pytest.fixture
def make_gift_card(store):
    def _make(code='GIFT-0000-0000-0001', balance='100.00'):
        card = GiftCard(store_id=store.id, code=code, initial_balance=Decimal(balance),
                        current_balance=Decimal(balance))
        db.session.add(card)
        db.session.commit()
        return card
    return _make

@pytest.fixture
def make_discount(store):
    def _make(code='SUMMER10', value='10'):
        d = Discount(store_id=store.id, code=code, value=Decimal(value), usage_count=0)
        db.session.add(d)
        db.session.commit()
        return d
    return _make

@pytest.fixture
def make_influencer(store):
    def _make(discount, commission_type='percentage', commission_value='10'):
        inf = Influencer(store_id=store.id, name='Noa', commission_type=commission_type,
                         commission_value=Decimal(commission_value), discount_ids=[discount.id],
                         total_sales=Decimal('0'), total_commission=Decimal('0'), total_orders=0)
        db.session.add(inf)
        db.session.commit()
        return inf
    return _make

def cart_line(product, quantity, price=None, variant=None, **extra):
    line = {
        'product_id': product.id if product is not None else None,
        'variant_id': variant.id if variant is not None else None,
        'name': product.name if product is not None else 'Custom item',
        'quantity': quantity,
        'price': str(price if price is not None else product.price),
    }
    line.update(extra)
    return line

@pytest.fixture
def make_pending(store):
    def _make(cart_items, request_id='page-req-1', order_data=None, order=None,
              discount_code=None, discount_amount='0', customer=None, provider='payplus'):
        data = {'customer': {'email': 'dana@example.com', 'first_name': 'Dana', 'last_name': 'Levi'},
                'shipping': {'method': 'courier', 'cost': '0'}}
        data.update(order_data or {})
        pending = PendingPayment(
            store_id=store.id,
            provider=provider,
            provider_request_id=request_id,
            order_data=data,
            cart_items=cart_items,
            customer_email=data['customer'].get('email'),
            customer_id=customer.id if customer else None,
            discount_code=discount_code,
            discount_amount=Decimal(discount_amount),
            order_id=order.id if order else None,
        )
        db.session.add(pending)
        db.session.commit()
        return pending
    return _make

@pytest.fixture
def make_order(store):
    def _make(order_number='1000', total='100.00', customer=None, items=None):
        order = Order(
            store_id=store.id,
            order_number=order_number,
            status=OrderStatus.PENDING,
            financial_status=FinancialStatus.PENDING,
            subtotal=Decimal(total),
            total=Decimal(total),
            customer_id=customer.id if customer else None,
            customer_email=customer.email if customer else 'guest@example.com',
        )
        for product, quantity in items or []:
            order.items.append(OrderItem(product_id=product.id, name=product.name, quantity=quantity,
                                         price=product.price, total=product.price * quantity))
        db.session.add(order)
        db.session.commit()
        return order
    return _make

def payplus_success(reference=None, request_id='page-req-1', amount=None):
    params = {
        'status': 'approved',
        'status_code': '000',
        'transaction_uid': 'txn-abc',
        'page_request_uid': request_id,
        'approval_num': '0123456',
        'four_digits': '4242',
        'brand_name': 'Visa',
    }
    if reference:
        params['more_info'] = reference
    if amount is not None:
        params['amount'] = str(amount)
    return params

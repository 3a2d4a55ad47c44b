from flowpay.extensions import db

from .store import Store, Setting, Customer, StoreEvent
from .product import Product, ProductVariant, BundleComponent, InventoryLog, WaitlistEntry
from .order import Order, OrderItem
from .payment import PendingPayment, PaymentTransaction
from .ledger import (
    Discount, AutomaticDiscount, GiftCard, GiftCardTransaction,
    CustomerCreditTransaction, Influencer, InfluencerSale
)
from .shipping import ShippingProvider, Shipment

"""
Models Package

This file ensures all SQLAlchemy models are imported and registered,
which is required for Base.metadata.create_all to see every table.
"""

from models.base import Base
from models.deliveryAccount import DeliveryAccount
from models.order import Order
from models.orderItem import OrderItem
from models.inventory import Inventory
from models.stockMovement import StockMovement
from models.deliveryInvoice import DeliveryInvoice
from models.syncCursor import SyncCursor
from models.syncRun import SyncRun
from models.orderProfit import OrderProfit
from models.partialDeliveryHistory import PartialDeliveryHistory

__all__ = [
    'Base',
    'DeliveryAccount',
    'Order',
    'OrderItem',
    'Inventory',
    'StockMovement',
    'DeliveryInvoice',
    'SyncCursor',
    'SyncRun',
    'OrderProfit',
    'PartialDeliveryHistory',
]

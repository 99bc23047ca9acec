"""
Custom exceptions for the courier delivery sync service.

This module provides a hierarchy of custom exceptions for consistent error handling
throughout the application.

Exception Hierarchy:
--------------------
DeliverySyncException (base)
├── CourierException
│   ├── AuthExpiredException
│   ├── CourierAPIException
│   └── MalformedCourierResponseException
├── OrderException
│   ├── OrderNotFoundException
│   ├── InvalidOrderStateException
│   ├── InvalidPartialDeliverySelectionException
│   └── PartialDeliveryAlreadyProcessedException
├── StockException
│   ├── InventoryNotFoundException
│   └── InsufficientReservedStockException
├── SettlementException
│   └── SettlementFailureException
└── SyncException
    ├── AccountNotFoundException
    └── InvalidSyncRequestException

Usage:
------
Services raise specific exceptions:
    raise OrderNotFoundException(order_id=123)

The sync orchestrator converts courier exceptions into per-account result
entries; the API router converts order exceptions into HTTP errors:
    try:
        await PartialDeliverySplitter.apply(order_id, item_ids, session)
    except OrderNotFoundException as e:
        raise HTTPException(status_code=404, detail=str(e))
"""

from .base import DeliverySyncException
from .courier import CourierException, AuthExpiredException, CourierAPIException, MalformedCourierResponseException
from .order import (
    OrderException,
    OrderNotFoundException,
    InvalidOrderStateException,
    InvalidPartialDeliverySelectionException,
    PartialDeliveryAlreadyProcessedException
)
from .stock import StockException, InventoryNotFoundException, InsufficientReservedStockException
from .settlement import SettlementException, SettlementFailureException
from .sync import SyncException, AccountNotFoundException, InvalidSyncRequestException

__all__ = [
    # Base
    'DeliverySyncException',

    # Courier
    'CourierException',
    'AuthExpiredException',
    'CourierAPIException',
    'MalformedCourierResponseException',

    # Order
    'OrderException',
    'OrderNotFoundException',
    'InvalidOrderStateException',
    'InvalidPartialDeliverySelectionException',
    'PartialDeliveryAlreadyProcessedException',

    # Stock
    'StockException',
    'InventoryNotFoundException',
    'InsufficientReservedStockException',

    # Settlement
    'SettlementException',
    'SettlementFailureException',

    # Sync
    'SyncException',
    'AccountNotFoundException',
    'InvalidSyncRequestException',
]

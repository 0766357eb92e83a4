"""Import every model so Base.metadata knows all tables."""
from fulfillment.models.client import Client, Plan
from fulfillment.models.delivery import DeliveryExpected, DeliveryStatus, DeliveryCondition
from fulfillment.models.warehouse_order import (
    WarehouseOrder, WarehouseOrderStatus, Package, UnitType,
    PACKABLE_STATUSES, IN_WAREHOUSE_STATUSES,
)
from fulfillment.models.shipment import (
    ShipmentOrder, ShipmentItem, ShipmentStatus, TransportChoice, TransportMode, PaymentMethod,
)
from fulfillment.models.transport_pricing import TransportPricingRule, PricingType
from fulfillment.models.billing import Invoice, InvoiceType, InvoiceStatus, Voucher, SetupFee
from fulfillment.models.document_sequence import DocumentSequence

__all__ = [
    "Client", "Plan",
    "DeliveryExpected", "DeliveryStatus", "DeliveryCondition",
    "WarehouseOrder", "WarehouseOrderStatus", "Package", "UnitType",
    "PACKABLE_STATUSES", "IN_WAREHOUSE_STATUSES",
    "ShipmentOrder", "ShipmentItem", "ShipmentStatus", "TransportChoice", "TransportMode", "PaymentMethod",
    "TransportPricingRule", "PricingType",
    "Invoice", "InvoiceType", "InvoiceStatus", "Voucher", "SetupFee",
    "DocumentSequence",
]

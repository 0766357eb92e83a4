from fastapi import APIRouter

from fulfillment.api.v1.endpoints import (
    # Warehouse: deliveries, receipt, packing
    warehouse,
    # Shipments and transport choice
    shipments,
    # Pricing rules
    transport_pricing,
    # Invoices, vouchers, subscriptions
    billing,
)


api_router = APIRouter(prefix="/api/v1")

api_router.include_router(
    warehouse.router,
    tags=["Warehouse"]
)

api_router.include_router(
    shipments.router,
    prefix="/shipments",
    tags=["Shipments"]
)

api_router.include_router(
    transport_pricing.router,
    prefix="/transport-pricing",
    tags=["Transport Pricing"]
)

api_router.include_router(
    billing.invoices_router,
    prefix="/invoices",
    tags=["Invoices"]
)

api_router.include_router(
    billing.router,
    prefix="/billing",
    tags=["Billing"]
)

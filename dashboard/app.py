"""
BrokerPro billing API (FastAPI backend).

Serves the purchase order, sales invoice, and shipping invoice screens of
the order workspace.  Every write goes through billing.DocumentService, so
stored totals always match their line items and charges.

Documents are returned in wire format (camelCase keys, float amounts).

Endpoints
---------
  GET  /api/health                                          → liveness check
  GET  /api/stats                                           → document counts by kind
  POST /api/totals                                          → preview line-item totals
  POST /api/shipping/totals                                 → preview shipping total
  GET  /api/orders/{order_id}/purchase-orders               → list purchase orders
  POST /api/purchase-orders                                 → create purchase order
  PUT  /api/orders/{order_id}/purchase-orders/{po_id}       → edit purchase order
  POST /api/orders/{order_id}/purchase-orders/{po_id}/payments → record a payment
  GET  /api/orders/{order_id}/invoices                      → list sales invoices
  POST /api/invoices                                        → create sales invoice
  PUT  /api/orders/{order_id}/invoices/{invoice_id}         → edit sales invoice
  GET  /api/orders/{order_id}/shipping                      → list shipping invoices
  POST /api/shipping                                        → create shipping invoice
  PUT  /api/orders/{order_id}/shipping/{shipping_id}        → edit shipping invoice
  GET  /api/orders/{order_id}/audit                         → consistency report

PUT bodies are partial updates; pass ?expected_version=N to reject the edit
when someone else saved the document first (409).
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from fastapi import Body, FastAPI, Query, Request
from fastapi.responses import JSONResponse

# ---------------------------------------------------------------------------
# Bootstrap: add the project root to path so the billing package imports
# when the app is served from inside dashboard/
# ---------------------------------------------------------------------------
_PROJECT_DIR = Path(__file__).parent.parent
if str(_PROJECT_DIR) not in sys.path:
    sys.path.insert(0, str(_PROJECT_DIR))

from billing import (  # noqa: E402
    ConflictError, DocumentService, NotFoundError, ValidationError,
    aggregate, aggregate_shipping, normalize,
)
from config import Config  # noqa: E402
from dashboard.models import (  # noqa: E402
    InvoiceCreate, PurchaseOrderCreate, ShippingCreate,
    ShippingTotalsRequest, TotalsRequest,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Service (lazy: the database is opened on first request)
# ---------------------------------------------------------------------------
_service: Optional[DocumentService] = None


def get_service() -> DocumentService:
    global _service
    if _service is None:
        _service = DocumentService(Config())
    return _service


def _wire(document) -> dict:
    return document.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="BrokerPro Billing API")


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(NotFoundError)
async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def _conflict(request: Request, exc: ConflictError) -> JSONResponse:
    logger.warning("Edit conflict on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# ── Routes ───────────────────────────────────────────────────────────────────

@app.get("/api/health")
def health():
    service = get_service()
    return {
        "status": "ok",
        "db_path": str(service.config.db_path),
        "default_commission_rate": service.config.default_commission_rate,
    }


@app.get("/api/stats")
def stats():
    return get_service().stats()


# ── Previews (nothing stored) ────────────────────────────────────────────────

@app.post("/api/totals")
def preview_totals(body: TotalsRequest):
    """Normalize the items and total them, as the invoice form does while typing."""
    items = [normalize(item) for item in body.items]
    totals = aggregate(items, body.fee_rate)
    return {
        "items":  [i.model_dump(mode="json", by_alias=True) for i in items],
        "totals": totals.model_dump(by_alias=True),
    }


@app.post("/api/shipping/totals")
def preview_shipping_totals(body: ShippingTotalsRequest):
    totals = aggregate_shipping(body.freight_charges, body.insurance, body.handling_fees)
    return totals.model_dump(by_alias=True)


# ── Purchase orders ──────────────────────────────────────────────────────────

@app.get("/api/orders/{order_id}/purchase-orders")
def list_purchase_orders(order_id: str):
    documents = get_service().list_documents("purchase_order", order_id)
    return {"purchaseOrders": [_wire(d) for d in documents]}


@app.post("/api/purchase-orders", status_code=201)
def create_purchase_order(body: PurchaseOrderCreate):
    po = get_service().create_purchase_order(
        order_id=body.order_id,
        items=body.items,
        supplier_id=body.supplier_id,
        supplier_name=body.supplier_name,
        payment_terms=body.payment_terms,
        delivery_date=body.delivery_date,
        payment=body.payment,
    )
    return {"purchaseOrder": _wire(po), "message": "Purchase order created successfully"}


@app.put("/api/orders/{order_id}/purchase-orders/{po_id}")
def update_purchase_order(
    order_id: str,
    po_id: str,
    patch: dict = Body(...),
    expected_version: Optional[int] = Query(default=None),
):
    po = get_service().update_document(
        "purchase_order", order_id, po_id, patch, expected_version=expected_version,
    )
    return {"purchaseOrder": _wire(po), "message": "Purchase order updated successfully"}


@app.post("/api/orders/{order_id}/purchase-orders/{po_id}/payments", status_code=201)
def record_payment(order_id: str, po_id: str, payment: dict = Body(...)):
    new_payment, po = get_service().record_payment(order_id, po_id, payment)
    return {
        "payment":       new_payment.model_dump(mode="json", by_alias=True),
        "purchaseOrder": _wire(po),
    }


# ── Sales invoices ───────────────────────────────────────────────────────────

@app.get("/api/orders/{order_id}/invoices")
def list_invoices(order_id: str):
    documents = get_service().list_documents("sales_invoice", order_id)
    return {"invoices": [_wire(d) for d in documents]}


@app.post("/api/invoices", status_code=201)
def create_invoice(body: InvoiceCreate):
    invoice = get_service().create_sales_invoice(
        order_id=body.order_id,
        items=body.items,
        client_id=body.client_id,
        client_name=body.client_name,
        fee_rate=body.fee_rate,
        invoice_date=body.invoice_date,
        due_date=body.due_date,
        payment_terms=body.payment_terms,
        selections=body.selections,
    )
    return {"invoice": _wire(invoice), "message": "Invoice created successfully"}


@app.put("/api/orders/{order_id}/invoices/{invoice_id}")
def update_invoice(
    order_id: str,
    invoice_id: str,
    patch: dict = Body(...),
    expected_version: Optional[int] = Query(default=None),
):
    invoice = get_service().update_document(
        "sales_invoice", order_id, invoice_id, patch, expected_version=expected_version,
    )
    return {"invoice": _wire(invoice), "message": "Invoice updated successfully"}


# ── Shipping invoices ────────────────────────────────────────────────────────

@app.get("/api/orders/{order_id}/shipping")
def list_shipping(order_id: str):
    documents = get_service().list_documents("shipping_invoice", order_id)
    return {"shippingInvoices": [_wire(d) for d in documents]}


@app.post("/api/shipping", status_code=201)
def create_shipping(body: ShippingCreate):
    shipping = get_service().create_shipping_invoice(
        order_id=body.order_id,
        shipping_company_id=body.shipping_company_id,
        shipping_company_name=body.shipping_company_name,
        tracking_number=body.tracking_number,
        shipping_method=body.shipping_method,
        expected_delivery=body.expected_delivery,
        freight_charges=body.freight_charges,
        insurance=body.insurance,
        handling_fees=body.handling_fees,
        items=body.items,
    )
    return {"shippingInvoice": _wire(shipping), "message": "Shipping invoice created successfully"}


@app.put("/api/orders/{order_id}/shipping/{shipping_id}")
def update_shipping(
    order_id: str,
    shipping_id: str,
    patch: dict = Body(...),
    expected_version: Optional[int] = Query(default=None),
):
    shipping = get_service().update_document(
        "shipping_invoice", order_id, shipping_id, patch, expected_version=expected_version,
    )
    return {"shippingInvoice": _wire(shipping), "message": "Shipping invoice updated successfully"}


# ── Consistency ──────────────────────────────────────────────────────────────

@app.get("/api/orders/{order_id}/audit")
def audit_order(order_id: str):
    results = get_service().audit(order_id)
    return {
        "orderId":   order_id,
        "documents": [r.model_dump(mode="json") for r in results],
        "errors":    sum(r.error_count for r in results),
        "warnings":  sum(r.warning_count for r in results),
    }

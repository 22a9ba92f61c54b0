from dataclasses import dataclass
from typing import List, Optional
import logging
import os

from fastapi import Body, Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from cart import Cart, format_money
from database import CatalogBackend, JsonFileBackend
from errors import NotFoundError, ScanNotFoundError, ScannerBusyError, ValidationError
from exchange import ExchangeGateway
from inventory import InventoryStore
from scanner import ClientDecoder, ScanDispatcher
from schemas import (
    CartItemIn,
    CartView,
    ImportResponse,
    OrderItem,
    Product,
    QuantityDelta,
    Receipt,
    ScanQuery,
    ScanResponse,
    ScanStatus,
    ShareResponse,
)

SCANNER_CLOSE_ON_MATCH = os.getenv("POS_SCANNER_CLOSE_ON_MATCH", "1") != "0"

logger = logging.getLogger(__name__)

app = FastAPI(title="Barcode POS API", version="1.2.0")

# Same-device web client; any origin may talk to the local API.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[],
    allow_origin_regex=r".*",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@dataclass
class PointOfSale:
    inventory: InventoryStore
    cart: Cart
    scanner: ScanDispatcher
    exchange: ExchangeGateway


def build_pos(backend: CatalogBackend, close_on_match: bool = SCANNER_CLOSE_ON_MATCH) -> PointOfSale:
    inventory = InventoryStore(backend)
    cart = Cart()
    scanner = ScanDispatcher(inventory, cart, ClientDecoder(), close_on_match=close_on_match)
    return PointOfSale(inventory=inventory, cart=cart, scanner=scanner, exchange=ExchangeGateway(inventory))


_pos: Optional[PointOfSale] = None


def get_pos() -> PointOfSale:
    global _pos
    if _pos is None:
        backend = JsonFileBackend()
        logger.info("Using catalog storage at %s", backend.path)
        _pos = build_pos(backend)
    return _pos


def cart_view(cart: Cart) -> CartView:
    total = cart.total()
    return CartView(items=cart.items, total=total, display_total=format_money(total))


@app.get("/test")
async def test():
    return {"status": "ok"}


@app.get("/products", response_model=List[Product])
async def list_products(q: str = "", pos: PointOfSale = Depends(get_pos)):
    return pos.inventory.search(q)


@app.post("/products", response_model=Product)
async def upsert_product(payload: dict = Body(...), pos: PointOfSale = Depends(get_pos)):
    try:
        return pos.inventory.upsert(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@app.get("/products/barcode/{barcode}", response_model=Product)
async def product_by_barcode(barcode: str, pos: PointOfSale = Depends(get_pos)):
    product = pos.inventory.find_by_barcode(barcode)
    if product is None:
        raise HTTPException(status_code=404, detail=f"Barcode not found: {barcode}")
    return product


@app.get("/products/{product_id}", response_model=Product)
async def get_product(product_id: str, pos: PointOfSale = Depends(get_pos)):
    try:
        return pos.inventory.get(product_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@app.delete("/products/{product_id}")
async def delete_product(product_id: str, pos: PointOfSale = Depends(get_pos)):
    pos.inventory.delete(product_id)
    return {"ok": True}


@app.get("/cart", response_model=CartView)
async def get_cart(pos: PointOfSale = Depends(get_pos)):
    return cart_view(pos.cart)


@app.post("/cart/items", response_model=OrderItem)
async def add_to_cart(payload: CartItemIn, pos: PointOfSale = Depends(get_pos)):
    try:
        product = pos.inventory.get(payload.product_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return pos.cart.add_item(product)


@app.patch("/cart/items/{product_id}", response_model=CartView)
async def update_cart_quantity(product_id: str, payload: QuantityDelta, pos: PointOfSale = Depends(get_pos)):
    pos.cart.update_quantity(product_id, payload.delta)
    return cart_view(pos.cart)


@app.delete("/cart/items/{product_id}", response_model=CartView)
async def remove_from_cart(product_id: str, pos: PointOfSale = Depends(get_pos)):
    pos.cart.remove_item(product_id)
    return cart_view(pos.cart)


@app.delete("/cart", response_model=CartView)
async def clear_cart(pos: PointOfSale = Depends(get_pos)):
    pos.cart.clear()
    return cart_view(pos.cart)


@app.post("/cart/checkout", response_model=Receipt)
async def checkout(pos: PointOfSale = Depends(get_pos)):
    try:
        return pos.cart.checkout()
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.get("/scan", response_model=ScanStatus)
async def scan_status(pos: PointOfSale = Depends(get_pos)):
    return ScanStatus(state=pos.scanner.state.value, close_on_match=pos.scanner.close_on_match)


@app.post("/scan/start", response_model=ScanStatus)
async def start_scan(pos: PointOfSale = Depends(get_pos)):
    try:
        await pos.scanner.start_scan()
    except ScannerBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    return ScanStatus(state=pos.scanner.state.value, close_on_match=pos.scanner.close_on_match)


@app.post("/scan/stop", response_model=ScanStatus)
async def stop_scan(pos: PointOfSale = Depends(get_pos)):
    await pos.scanner.stop_scan()
    return ScanStatus(state=pos.scanner.state.value, close_on_match=pos.scanner.close_on_match)


@app.post("/scan/decode", response_model=ScanResponse)
async def decode(payload: ScanQuery, pos: PointOfSale = Depends(get_pos)):
    code = payload.code.strip()
    if not code:
        raise HTTPException(status_code=400, detail="Invalid barcode")
    try:
        item = await pos.scanner.dispatch(code)
    except ScanNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return ScanResponse(accepted=item is not None, state=pos.scanner.state.value, item=item)


@app.get("/exchange/export")
async def export_catalog(pos: PointOfSale = Depends(get_pos)):
    backup = pos.exchange.export()
    return Response(
        content=backup.content,
        media_type=backup.media_type,
        headers={"Content-Disposition": f'attachment; filename="{backup.filename}"'},
    )


@app.post("/exchange/import", response_model=ImportResponse)
async def import_catalog(request: Request, pos: PointOfSale = Depends(get_pos)):
    result = pos.exchange.import_catalog(await request.body())
    if not result.ok:
        raise HTTPException(status_code=400, detail=str(result.error))
    return ImportResponse(ok=True, count=len(result.products))


@app.post("/exchange/share", response_model=ShareResponse)
async def share_catalog(pos: PointOfSale = Depends(get_pos)):
    outcome = pos.exchange.share()
    return ShareResponse(ok=outcome.ok, method=outcome.method, error=str(outcome.error) if outcome.error else None)

from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union
import logging
import uuid

from pydantic import ValidationError as SchemaError

from database import CatalogBackend
from errors import NotFoundError, ValidationError
from schemas import Product, ProductDraft

logger = logging.getLogger(__name__)

ProductInput = Union[Mapping[str, Any], ProductDraft]


def new_product_id() -> str:
    return str(uuid.uuid4())


def _as_dict(data: ProductInput) -> Dict[str, Any]:
    if isinstance(data, ProductDraft):
        return data.model_dump(exclude_none=True)
    return dict(data)


def build_product(data: ProductInput, id_factory: Callable[[], str] = new_product_id) -> Product:
    """Validate one product record, assigning an id when it has none."""
    fields = _as_dict(data)
    if not fields.get("id"):
        fields["id"] = id_factory()
    if isinstance(fields.get("price"), float):
        # floats keep their shortest decimal spelling
        fields["price"] = Decimal(repr(fields["price"]))
    try:
        return Product.model_validate(fields)
    except SchemaError as exc:
        raise ValidationError(f"Invalid product: {exc.error_count()} error(s)", exc.errors()) from exc


class InventoryStore:
    """
    Catalog of products keyed by id, in insertion order.

    Every successful mutation rewrites the full catalog through the backend
    before returning. Products are immutable models, so `list()` hands out
    a snapshot that callers cannot use to reach internal state.
    """

    def __init__(self, backend: CatalogBackend, id_factory: Callable[[], str] = new_product_id):
        self.backend = backend
        self.id_factory = id_factory
        self._products: Dict[str, Product] = {}
        for record in backend.load():
            try:
                product = Product.model_validate(record)
            except SchemaError as exc:
                logger.warning("Skipping unreadable stored product %r: %s", record, exc)
                continue
            self._products[product.id] = product
        logger.info("Loaded %d products", len(self._products))

    def _commit(self, products: Dict[str, Product]) -> None:
        # storage first; memory only moves once the write has succeeded
        self.backend.save([p.model_dump(mode="json") for p in products.values()])
        self._products = products

    def upsert(self, data: ProductInput) -> Product:
        fields = _as_dict(data)
        product_id = fields.get("id")
        if product_id:
            existing = self._products.get(product_id)
            if existing is None:
                raise NotFoundError(f"Product {product_id} not found")
            # a full record replaces every field; fields missing from the edit keep their current values
            product = build_product({**existing.model_dump(), **fields})
            products = dict(self._products)
            products[product_id] = product
            action = "updated"
        else:
            product = build_product(fields, self.id_factory)
            products = {**self._products, product.id: product}
            action = "created"
        self._commit(products)
        logger.info("Product %s %s (barcode=%s)", product.id, action, product.barcode)
        return product

    def delete(self, product_id: str) -> None:
        existed = product_id in self._products
        self._commit({k: v for k, v in self._products.items() if k != product_id})
        if existed:
            logger.info("Product %s deleted", product_id)

    def get(self, product_id: str) -> Product:
        product = self._products.get(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    def find_by_barcode(self, barcode: str) -> Optional[Product]:
        for product in self._products.values():
            if product.barcode == barcode:
                return product
        return None

    def list(self) -> List[Product]:
        return list(self._products.values())

    def search(self, query: str) -> List[Product]:
        needle = query.strip()
        if not needle:
            return self.list()
        lowered = needle.lower()
        return [p for p in self._products.values() if lowered in p.name.lower() or needle in p.barcode]

    def replace_all(self, products: Iterable[ProductInput]) -> List[Product]:
        # validate everything first; the swap in `_commit` is a single assignment
        validated: Dict[str, Product] = {}
        for index, data in enumerate(products):
            try:
                product = build_product(data, self.id_factory)
            except ValidationError as exc:
                raise ValidationError(f"Product #{index} is invalid", exc.errors) from exc
            validated[product.id] = product
        self._commit(validated)
        logger.info("Catalog replaced with %d products", len(validated))
        return list(validated.values())

"""Pytest fixtures: in-memory catalog, cart and a scripted decoder."""

from decimal import Decimal
from typing import List, Optional

import pytest

from cart import Cart
from database import MemoryBackend
from inventory import InventoryStore
from scanner import Push, ScanDispatcher


class FakeDecoder:
    """Stands in for the camera: tests push decoded text through `emit`."""

    def __init__(self, script: Optional[List[str]] = None) -> None:
        self.script = list(script or [])
        self.push: Optional[Push] = None
        self.opened = 0
        self.closed = 0

    @property
    def active(self) -> bool:
        return self.opened > self.closed

    async def open(self, push: Push) -> None:
        self.opened += 1
        self.push = push
        for text in self.script:
            push(text)

    async def close(self) -> None:
        self.closed += 1

    def emit(self, text: str) -> None:
        assert self.push is not None
        self.push(text)


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def inventory(backend) -> InventoryStore:
    store = InventoryStore(backend)
    store.upsert({"barcode": "1234567890123", "name": "Cola", "price": Decimal("3.50"), "stock": 10})
    store.upsert({"barcode": "4006381333931", "name": "Green Tea", "price": Decimal("2.20"), "stock": 4})
    return store


@pytest.fixture
def cart() -> Cart:
    return Cart()


@pytest.fixture
def decoder() -> FakeDecoder:
    return FakeDecoder()


@pytest.fixture
def dispatcher(inventory, cart, decoder) -> ScanDispatcher:
    return ScanDispatcher(inventory, cart, decoder)

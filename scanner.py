from contextlib import asynccontextmanager
from enum import Enum
from typing import AsyncIterator, Callable, Optional, Protocol
import asyncio
import logging

from cart import Cart
from errors import ScanNotFoundError, ScannerBusyError
from inventory import InventoryStore
from schemas import OrderItem

logger = logging.getLogger(__name__)

Push = Callable[[str], None]


class ScanState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"


class Decoder(Protocol):
    """
    Camera barcode decoder. After `open(push)` it calls `push(text)` for each
    decoded barcode, from its own schedule. `close()` must stop emitting and
    release the capture device before it returns.
    """

    async def open(self, push: Push) -> None: ...

    async def close(self) -> None: ...


class ClientDecoder:
    """Decoder running in the client (browser camera); only its activation is tracked here."""

    def __init__(self) -> None:
        self.active = False
        self.push: Optional[Push] = None

    async def open(self, push: Push) -> None:
        self.active = True
        self.push = push

    async def close(self) -> None:
        self.active = False
        self.push = None


class ScanDispatcher:
    """
    Routes decoded barcode text into a catalog lookup and then into the cart.

    The decoder is held only while the dispatcher is `SCANNING`. Leaving that
    state for any reason flips the state first and then closes the decoder, so
    events that race the close land in `IDLE` and are dropped.
    """

    def __init__(self, inventory: InventoryStore, cart: Cart, decoder: Decoder, close_on_match: bool = True):
        self.inventory = inventory
        self.cart = cart
        self.decoder = decoder
        self.close_on_match = close_on_match
        self.state = ScanState.IDLE
        self.events: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        self._holding_decoder = False

    @property
    def scanning(self) -> bool:
        return self.state is ScanState.SCANNING

    async def start_scan(self) -> None:
        if self.scanning:
            raise ScannerBusyError("A scan session is already running")
        # a fresh channel per session; a stale push from an earlier session goes nowhere
        self.events = asyncio.Queue()
        self.state = ScanState.SCANNING
        self._holding_decoder = True
        try:
            await self.decoder.open(self.events.put_nowait)
        except BaseException:
            await self.stop_scan()
            raise
        logger.info("Scan session started")

    async def stop_scan(self) -> None:
        self.state = ScanState.IDLE
        if not self._holding_decoder:
            return
        self._holding_decoder = False
        # wakes a `run()` loop blocked on an empty channel
        self.events.put_nowait(None)
        await self.decoder.close()
        logger.info("Scan session stopped")

    async def dispatch(self, text: str) -> Optional[OrderItem]:
        """
        Handle one decoded-text event. Returns the updated cart line, or None
        if the event was ignored because no session is active. Raises
        ScanNotFoundError when the barcode is not in the catalog.
        """
        if not self.scanning:
            logger.debug("Ignoring decode event %r outside a scan session", text)
            return None

        product = self.inventory.find_by_barcode(text)
        if product is None:
            logger.warning("Scanned barcode %s not in catalog", text)
            await self.stop_scan()
            raise ScanNotFoundError(text)

        item = self.cart.add_item(product)
        logger.info("Scanned %s -> %s (qty=%d)", text, product.name, item.quantity)
        if self.close_on_match:
            await self.stop_scan()
        return item

    @asynccontextmanager
    async def session(self) -> AsyncIterator["ScanDispatcher"]:
        await self.start_scan()
        try:
            yield self
        finally:
            await self.stop_scan()

    async def run(self) -> Optional[OrderItem]:
        """
        Open a session and consume decode events one at a time until a match
        closes it. With `close_on_match` off this only returns once the session
        is stopped from elsewhere, returning the last accepted line.
        """
        last: Optional[OrderItem] = None
        async with self.session():
            while self.scanning:
                text = await self.events.get()
                if text is None:
                    break
                item = await self.dispatch(text)
                if item is not None:
                    last = item
        return last

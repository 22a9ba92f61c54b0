from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, List, Optional, Protocol, Union
import datetime
import json
import logging
import os

from errors import ParseError, PosError, ShareUnavailableError, ValidationError
from inventory import InventoryStore, build_product
from schemas import Product

BACKUP_PRETTY = os.getenv("POS_BACKUP_PRETTY", "1") != "0"
SHARE_TITLE = "Inventory backup"

logger = logging.getLogger(__name__)


class ShareTarget(Protocol):
    def share(self, title: str, text: str) -> None:
        """Hand text to the platform share sheet; raise ShareUnavailableError if there is none."""


class Clipboard(Protocol):
    def copy(self, text: str) -> None: ...


class NoShareTarget:
    def share(self, title: str, text: str) -> None:
        raise ShareUnavailableError("No share target on this platform")


class MemoryClipboard:
    def __init__(self) -> None:
        self.text: Optional[str] = None

    def copy(self, text: str) -> None:
        self.text = text


@dataclass
class BackupFile:
    filename: str
    content: str
    media_type: str = "application/json"


@dataclass
class ImportResult:
    ok: bool
    products: List[Product] = field(default_factory=list)
    error: Optional[Union[ParseError, ValidationError]] = None


@dataclass
class ShareOutcome:
    ok: bool
    method: Optional[str] = None
    error: Optional[PosError] = None


def encode_catalog(products: List[Product], pretty: bool = False) -> str:
    records = [p.model_dump(mode="json") for p in products]
    return json.dumps(records, indent=2 if pretty else None, ensure_ascii=False)


def decode_catalog(raw: Union[str, bytes]) -> ImportResult:
    """Parse and validate a backup payload. Never raises; failures come back in the result."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            return ImportResult(ok=False, error=ParseError(f"Backup is not valid UTF-8: {exc}"))
    try:
        data = json.loads(raw, parse_float=Decimal)
    except (TypeError, ValueError) as exc:
        return ImportResult(ok=False, error=ParseError(f"Not valid JSON: {exc}"))
    if not isinstance(data, list):
        return ImportResult(ok=False, error=ParseError("Backup must be a JSON array of products"))

    products: List[Product] = []
    for index, record in enumerate(data):
        if not isinstance(record, dict):
            return ImportResult(ok=False, error=ValidationError(f"Product #{index} is not an object"))
        try:
            products.append(build_product(record))
        except ValidationError as exc:
            return ImportResult(ok=False, error=ValidationError(f"Product #{index} is invalid", exc.errors))
    return ImportResult(ok=True, products=products)


def backup_filename(now: datetime.datetime) -> str:
    return f"inventory_backup_{now.strftime('%Y%m%d_%H%M%S')}.json"


class ExchangeGateway:
    def __init__(
        self,
        inventory: InventoryStore,
        share_target: Optional[ShareTarget] = None,
        clipboard: Optional[Clipboard] = None,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
        pretty: bool = BACKUP_PRETTY,
    ):
        self.inventory = inventory
        self.share_target = share_target or NoShareTarget()
        self.clipboard = clipboard or MemoryClipboard()
        self.clock = clock
        self.pretty = pretty

    def export(self) -> BackupFile:
        products = self.inventory.list()
        backup = BackupFile(filename=backup_filename(self.clock()), content=encode_catalog(products, self.pretty))
        logger.info("Exported %d products to %s", len(products), backup.filename)
        return backup

    def import_catalog(self, raw: Union[str, bytes]) -> ImportResult:
        result = decode_catalog(raw)
        if not result.ok:
            logger.warning("Import rejected: %s", result.error)
            return result
        try:
            result.products = self.inventory.replace_all(result.products)
        except ValidationError as exc:
            return ImportResult(ok=False, error=exc)
        logger.info("Imported %d products", len(result.products))
        return result

    def share(self) -> ShareOutcome:
        text = encode_catalog(self.inventory.list())
        try:
            self.share_target.share(SHARE_TITLE, text)
            return ShareOutcome(ok=True, method="share")
        except ShareUnavailableError:
            logger.info("Share unavailable, copying catalog to clipboard")
        except Exception as exc:
            logger.warning("Share failed: %s", exc)
            return ShareOutcome(ok=False, method="share", error=PosError(f"Share failed: {exc}"))
        try:
            self.clipboard.copy(text)
        except Exception as exc:
            logger.warning("Clipboard copy failed: %s", exc)
            return ShareOutcome(ok=False, method="clipboard", error=PosError(f"Clipboard copy failed: {exc}"))
        return ShareOutcome(ok=True, method="clipboard")

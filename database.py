from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Protocol
import json
import logging
import os

STORAGE_PATH = os.getenv("POS_STORAGE_PATH", "inventory.json")
STORAGE_KEY = os.getenv("POS_STORAGE_KEY", "barcode_inventory_data")

logger = logging.getLogger(__name__)


class CatalogBackend(Protocol):
    def load(self) -> List[Dict[str, Any]]: ...

    def save(self, records: List[Dict[str, Any]]) -> None: ...


class MemoryBackend:
    """Keeps the catalog in a dict keyed like the on-disk document. Used by tests."""

    def __init__(self, records: Optional[List[Dict[str, Any]]] = None, key: str = STORAGE_KEY):
        self.key = key
        self.data: Dict[str, str] = {}
        self.writes = 0
        if records is not None:
            self.data[key] = json.dumps(records)

    def load(self) -> List[Dict[str, Any]]:
        raw = self.data.get(self.key)
        return json.loads(raw, parse_float=Decimal) if raw else []

    def save(self, records: List[Dict[str, Any]]) -> None:
        self.data[self.key] = json.dumps(records)
        self.writes += 1


class JsonFileBackend:
    """
    Durable local storage: one JSON document holding the catalog array under
    a fixed key. Every save rewrites the whole document via a temp file and
    `os.replace`, so a crash mid-write leaves the previous version intact.
    """

    def __init__(self, path: str = STORAGE_PATH, key: str = STORAGE_KEY):
        self.path = path
        self.key = key

    def _read_document(self, parse_float: Optional[Callable[[str], Any]] = None) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                doc = json.load(fh, parse_float=parse_float)
            if not isinstance(doc, dict):
                raise ValueError("storage document is not an object")
            return doc
        except ValueError as exc:
            aside = self.path + ".corrupt"
            logger.warning("Corrupt storage at %s (%s); moved to %s", self.path, exc, aside)
            os.replace(self.path, aside)
            return {}

    def load(self) -> List[Dict[str, Any]]:
        records = self._read_document(parse_float=Decimal).get(self.key) or []
        if not isinstance(records, list):
            logger.warning("Storage key %r does not hold an array; starting empty", self.key)
            return []
        return records

    def save(self, records: List[Dict[str, Any]]) -> None:
        doc = self._read_document()
        doc[self.key] = records
        tmp = self.path + ".tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump(doc, fh, ensure_ascii=False)
            os.replace(tmp, self.path)
        except Exception:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise

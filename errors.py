from typing import Any, List, Optional


class PosError(Exception):
    """Base class for every recoverable point-of-sale error."""


class ValidationError(PosError):
    def __init__(self, message: str, errors: Optional[List[Any]] = None):
        super().__init__(message)
        self.errors = errors or []


class NotFoundError(PosError):
    pass


class ParseError(PosError):
    pass


class ScanNotFoundError(PosError):
    def __init__(self, barcode: str):
        super().__init__(f"Barcode not found: {barcode}")
        self.barcode = barcode


class ShareUnavailableError(PosError):
    pass


class ScannerBusyError(PosError):
    pass

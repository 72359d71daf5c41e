"""Scan errors.

Every failure of a scan is a ScanError subclass so both entry points can
map it to a response in one place.
"""


class ConfigError(Exception):
    """A required setting is missing or invalid."""


class ScanError(Exception):
    """Base class for all scan errors."""


class MissingProductError(ScanError):
    """No product name was supplied."""

    def __init__(self, message: str = "Missing 'product' parameter") -> None:
        super().__init__(message)


class ProductNotFoundError(ScanError):
    """The store has no record titled with the product name."""

    def __init__(self, product: str) -> None:
        self.product = product
        super().__init__(f"Product '{product}' not found in database")


class StoreError(ScanError):
    """A call to the inventory store failed."""

    prefix = "Notion request failed"

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"{self.prefix}: {detail}")


class LookupFailedError(StoreError):
    prefix = "Notion query failed"


class UpdateFailedError(StoreError):
    prefix = "Notion update failed"


class ScanInProgressError(ScanError):
    """Another scan holds the token or the product lock."""


class GuardUnavailableError(ScanError):
    """Redis could not be reached to lock the product or track the scan token."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Scan guard unavailable: {detail}")

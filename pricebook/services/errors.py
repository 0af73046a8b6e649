"""
Domain errors raised by the price list services.
The API layer maps each class to an HTTP status through `status_code`.
"""


class PriceListError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PriceListNotFound(PriceListError):
    status_code = 404


class InvalidPrice(PriceListError):
    status_code = 422

    def __init__(self, message: str, product_ids: list[str] | None = None):
        super().__init__(message)
        self.product_ids = product_ids or []


class EmptyPriceList(PriceListError):
    status_code = 422


class InvalidScope(PriceListError):
    status_code = 422


class MissingEffectiveDate(PriceListError):
    status_code = 422


class DuplicateProductInList(PriceListError):
    status_code = 409

    def __init__(self, message: str, product_id: str | None = None):
        super().__init__(message)
        self.product_id = product_id


class ConcurrentPromotion(PriceListError):
    """Lost a race on set_current; re-read the scope and retry."""
    status_code = 409
    retryable = True


class EffectiveDateConflict(PriceListError):
    status_code = 409


class PriceListLocked(PriceListError):
    """Current and superseded lists are history and cannot be edited."""
    status_code = 409

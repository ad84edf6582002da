"""
Domain errors raised by the pricing core.

The app-level exception handler in main.py turns them into JSON responses
with the status codes below.
The pricing engine itself never raises. These come from the save boundary,
the calculation store, and the quote lifecycle.
"""


class QuoteCalcError(Exception):
    """Base class. status_code is the HTTP status the routers respond with."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PricingValidationError(QuoteCalcError):
    """Bad numeric input caught before it reaches the engine or the database."""

    status_code = 400


class CalculationKeyError(QuoteCalcError):
    """A calculation arrived with neither a quote part nor a line item to key it on."""

    status_code = 400


class NotFoundError(QuoteCalcError):
    status_code = 404


class QuoteLockedError(QuoteCalcError):
    """Quote is past Draft, so pricing and line items are read-only."""

    status_code = 409


class InvalidStatusTransition(QuoteCalcError):
    status_code = 409


class StaleCalculationError(QuoteCalcError):
    """expected_version did not match the stored calculation."""

    status_code = 409

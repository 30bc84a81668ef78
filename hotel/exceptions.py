"""
Errors raised by the order, billing and reservation workflows.
Views translate these into API error responses.
"""


class HotelError(Exception):
    """Base class for workflow errors."""
    default_message = 'Request could not be completed.'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class InvalidDiscount(HotelError):
    """Discount is negative or larger than the amount it applies to."""
    default_message = 'Discount is out of range.'


class IllegalTransition(HotelError):
    """Requested status is not reachable from the current status for this actor."""
    default_message = 'Status change is not permitted.'

    def __init__(self, current=None, requested=None, message=None):
        self.current = current
        self.requested = requested
        if message is None and current is not None:
            message = f"Cannot move from '{current}' to '{requested}'."
        super().__init__(message)


class AlreadySettled(HotelError):
    """Payment attempted on an order that is already paid."""
    default_message = 'Order is already paid.'


class OrderNotSettled(HotelError):
    """Receipt requested for an order that has not been paid."""
    default_message = 'Order has not been settled yet.'


class PersistenceFailure(HotelError):
    """Underlying read or write failed; nothing was changed."""
    default_message = 'Could not save changes. Please try again.'


class ConcurrentModification(PersistenceFailure):
    """The record changed between read and conditional write."""
    default_message = 'Record was changed by someone else. Reload and try again.'

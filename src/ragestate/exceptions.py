"""Library exceptions for the ragestate package."""

from uuid import UUID


class RageStateError(Exception):
    """Base exception for ragestate library."""

    pass


class ValidationError(RageStateError):
    """Raised when caller input fails validation before any write happens."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"Invalid {field}: {message}")


class MessageValidationError(ValidationError):
    """Raised when a chat message cannot be sent as composed."""

    pass


class EventStoreError(RageStateError):
    """Raised when there's an error in the event log store."""

    pass


class EventNotFoundError(EventStoreError):
    """Raised when an event cannot be found."""

    def __init__(self, event_id: UUID) -> None:
        self.event_id = event_id
        super().__init__(f"Event not found: {event_id}")


class UnexpectedEventTypeError(EventStoreError):
    """Raised when a stored event is not of the type a view expects."""

    def __init__(self, event_id: UUID, expected: str, actual: str) -> None:
        self.event_id = event_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"Event {event_id} is {actual}, expected {expected}")


class EventBusError(RageStateError):
    """Raised when there's an error in the event bus."""

    pass


class SerializationError(RageStateError):
    """Raised when event serialization or deserialization fails."""

    def __init__(self, event_type: str, message: str) -> None:
        self.event_type = event_type
        super().__init__(f"Serialization error for {event_type}: {message}")


class DocumentNotFoundError(RageStateError):
    """Raised when a read model document cannot be found for an update."""

    def __init__(self, document_id: str) -> None:
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class ProjectionError(RageStateError):
    """Raised when a projection fails to process an event."""

    def __init__(self, projection_name: str, event_id: UUID, message: str) -> None:
        self.projection_name = projection_name
        self.event_id = event_id
        super().__init__(f"Projection {projection_name} failed on event {event_id}: {message}")


class UnhandledEventError(RageStateError):
    """
    Raised when an event has no registered handler and strict mode is enabled.

    Attributes:
        event_type: The name of the event type that wasn't handled
        event_id: ID of the unhandled event
        handler_class: Name of the projection class
        available_handlers: List of event type names that have handlers
    """

    def __init__(
        self,
        event_type: str,
        event_id: UUID,
        handler_class: str,
        available_handlers: list[str],
    ) -> None:
        self.event_type = event_type
        self.event_id = event_id
        self.handler_class = handler_class
        self.available_handlers = available_handlers
        handlers_str = ", ".join(available_handlers) if available_handlers else "none"
        super().__init__(
            f"No handler registered for event type '{event_type}' "
            f"in {handler_class}. Available handlers: {handlers_str}."
        )


class CheckoutError(RageStateError):
    """Base class for checkout and order finalization failures."""

    pass


class MinimumChargeError(CheckoutError):
    """Raised when a cart total is below the payment processor's minimum charge."""

    def __init__(self, amount_cents: int, minimum_cents: int) -> None:
        self.amount_cents = amount_cents
        self.minimum_cents = minimum_cents
        super().__init__(
            f"Order total ${amount_cents / 100:.2f} is too low; the "
            f"minimum order amount is ${minimum_cents / 100:.2f}."
        )


class FinalizeRequestError(CheckoutError):
    """
    Raised by the order finalization endpoint for a rejected request.

    Carries the HTTP status and machine-readable code returned to the client.
    """

    def __init__(self, status_code: int, code: str, message: str) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"{code} ({status_code}): {message}")


class OrderPersistenceError(CheckoutError):
    """Raised when an order could not be saved after all retry attempts."""

    def __init__(self, order_number: str, attempts: int, cause: Exception) -> None:
        self.order_number = order_number
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"Failed to save order {order_number} after {attempts} attempts: {cause}")


class CatalogUnavailableError(RageStateError):
    """Raised by catalog clients when the upstream shop cannot be reached."""

    pass

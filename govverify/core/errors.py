"""
Application errors for clean error handling.

ServiceUnavailableError marks a misconfigured dependency (the LLM key); startup then
leaves the agent unset and agent routes answer 503. Retrieval and gateway
errors are raised by their clients and converted to user-visible fallbacks by
the tool handlers.
"""


class ServiceUnavailableError(Exception):
    """Raised when a required service (e.g. the LLM) is unavailable or misconfigured."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class RetrievalServiceError(Exception):
    """Raised when the knowledge-base retrieval service fails or returns a non-200 status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class GatewayDeliveryError(Exception):
    """Raised when an outbound message could not be delivered to the messaging gateway."""

    def __init__(self, phone: str, message: str) -> None:
        self.phone = phone
        self.message = message
        super().__init__(f"Delivery to {phone} failed: {message}")

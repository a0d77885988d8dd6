"""Gateway HTTP status codes and their meaning for uploads."""
from typing import Dict, Iterable


class GatewayStatus:
    """Gateway status codes returned by transaction and chunk endpoints."""
    
    STATUS_MESSAGES: Dict[int, str] = {
        200: 'OK: The request was accepted.',
        208: 'ALREADY_PROCESSED: The transaction or chunk is already known to the node.',
        400: 'BAD_REQUEST: The transaction or chunk is malformed or invalid.',
        402: 'PAYMENT_REQUIRED: The wallet cannot cover the transaction reward.',
        408: 'TIMEOUT: The node timed out waiting for the request.',
        410: 'GONE: The transaction was dropped by the node.',
        413: 'TOO_LARGE: The request body exceeds the node limits.',
        429: 'RATE_LIMITED: Too many requests, wait before retrying.',
        500: 'INTERNAL: The node failed to process the request.',
        502: 'BAD_GATEWAY: Upstream node unavailable.',
        503: 'UNAVAILABLE: The node is temporarily unavailable or overloaded.',
        504: 'GATEWAY_TIMEOUT: Upstream node timed out.',
    }
    
    ACCEPTED = (200, 208)
    
    @classmethod
    def get_message(cls, status: int) -> str:
        """Gets description for a status code."""
        return cls.STATUS_MESSAGES.get(status, f"Unknown status: {status}")
    
    @classmethod
    def is_accepted(cls, status: int) -> bool:
        """True if the node accepted (or already had) the submitted data."""
        return status in cls.ACCEPTED
    
    @classmethod
    def is_transient(cls, status: int, retry_on: Iterable[int]) -> bool:
        """True if the status indicates a failure worth retrying."""
        return status in tuple(retry_on)

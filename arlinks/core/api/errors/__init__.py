"""Gateway error helpers."""
from .api_errors import GatewayStatus

__all__ = ['GatewayStatus']

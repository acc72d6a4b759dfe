"""
External API clients.
"""

from storefront.clients.payment_gateway_client import PaymentGatewayClient, PaymentGatewayError

__all__ = ["PaymentGatewayClient", "PaymentGatewayError"]

"""
Storefront commerce backend: cart, checkout, promotions, orders and payments.
"""

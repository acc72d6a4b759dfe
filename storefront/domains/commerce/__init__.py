"""
Commerce Domain

Cart, checkout, promotions, order lifecycle and payment reconciliation.
"""

"""
HTTP layer: top-level router and exception handlers.
"""

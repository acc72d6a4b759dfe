"""
Commerce Infrastructure Layer

Adapters implementing the commerce ports.
"""

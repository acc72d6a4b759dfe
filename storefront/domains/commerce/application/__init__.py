"""
Commerce Application Layer

Use cases and ports (interfaces) for the commerce domain.
"""

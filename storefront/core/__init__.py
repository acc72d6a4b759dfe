"""
Core building blocks: domain base classes, logging, dependency wiring and app lifecycle.
"""

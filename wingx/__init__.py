"""Wingx admin backend: payment verification, new-order alerts and store catalog."""

__version__ = "1.0.0"

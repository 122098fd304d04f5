"""Digital Sky drone import application API."""

__version__ = "1.0.0"

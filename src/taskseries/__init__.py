"""Recurring-task series engine: window generation, refill and series operations."""

__version__ = "0.1.0"

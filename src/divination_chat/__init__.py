"""Streaming chat client for the divination service."""

__version__ = "0.1.0"

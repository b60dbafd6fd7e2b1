"""Diagnostics for OpenAI-compatible API gateways."""

__all__ = ["__version__"]

__version__ = "0.4.0"

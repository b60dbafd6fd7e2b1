"""Outbound HTTP to the gateway."""

"""Configuration constants and settings resolution."""

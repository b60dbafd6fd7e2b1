"""Typer command line interface for gatedoctor."""

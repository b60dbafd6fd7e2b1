"""Command modules registered on the gatedoctor Typer application."""

"""Command orchestration: doctor diagnostics, catalog, pricing and account lookups."""

"""Command-line helpers for inspecting the consequence ledger."""

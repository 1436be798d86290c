"""
portfolio_advisor.reporting: Portfolio file loading, formatting, and export.

Modules:
  reader    : Load raw rows or previously enriched records from JSON files.
  formatters: Number formatting and ASCII terminal tables for Typer CLI commands.
  export    : JSON export of enriched records.
"""

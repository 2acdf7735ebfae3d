"""Per-bank statement adapters."""

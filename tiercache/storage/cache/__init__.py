"""Cache store implementations."""

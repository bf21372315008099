"""HTTP layer of the order service."""

"""Per-domain modules."""

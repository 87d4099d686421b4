"""Domain-level protocols and value types."""

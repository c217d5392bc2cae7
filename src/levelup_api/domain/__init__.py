"""Domain errors and value types shared across services."""

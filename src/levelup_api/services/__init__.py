"""Service layer for the storefront core."""

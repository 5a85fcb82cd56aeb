"""Service layer: persistence backends."""

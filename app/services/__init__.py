"""Service layer for subscriber, catalog and RADIUS policy operations."""

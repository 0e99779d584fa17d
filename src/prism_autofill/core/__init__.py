"""Core models, errors and service registry."""

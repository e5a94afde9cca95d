"""Support chat service."""

"""Core plugins shipped with the service."""

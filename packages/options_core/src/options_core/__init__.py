"""Shared logging and tracing setup for the options services."""

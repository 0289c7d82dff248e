"""Cached, nonce-protected options store for a single plugin identity."""

PLUGIN_METADATA = {
    "name": "options",
    "version": "0.7.0",
    "description": "Reads, caches and updates a plugin's options blob behind a nonce check.",
    "author": "salieri_dev",
}

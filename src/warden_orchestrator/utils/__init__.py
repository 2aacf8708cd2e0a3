"""Shared helpers: async concurrency and version parsing."""

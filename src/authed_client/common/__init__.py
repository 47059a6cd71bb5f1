"""Shared infrastructure: errors, logging, sanitization."""

"""Shared utilities: logging and content hashing."""

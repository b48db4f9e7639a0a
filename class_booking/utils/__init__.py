"""Shared utilities: errors, logging and retry."""

"""Shared utilities (logging, async helpers)."""

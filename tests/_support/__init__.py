"""Shared test helpers (driver doubles)."""

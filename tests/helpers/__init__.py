"""Shared helpers for bridgeline tests."""

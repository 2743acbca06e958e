"""Property-based tests for bridgeline."""

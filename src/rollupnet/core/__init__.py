"""Core primitives and settings for rollupnet."""

"""Core aggregation, reconciliation, caching and scheduling logic."""

"""Metachan Utilities Module."""

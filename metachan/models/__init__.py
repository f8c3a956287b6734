"""Metachan Models Module."""

"""Metachan Configuration Module."""

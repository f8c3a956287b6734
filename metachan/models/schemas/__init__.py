"""Pydantic schemas for provider payloads and the canonical anime record."""

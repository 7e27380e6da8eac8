"""Pydantic records shared across the coordination core."""

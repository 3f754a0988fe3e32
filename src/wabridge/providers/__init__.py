"""Outbound delivery providers."""

"""Inbound provider notifications."""

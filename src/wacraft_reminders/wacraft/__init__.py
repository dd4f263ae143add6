"""Wacraft API client, credentials and wire models."""

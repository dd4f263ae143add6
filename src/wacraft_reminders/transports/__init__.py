"""Outbound delivery channels other than the Wacraft API."""

"""Inactivity reminders for Wacraft contacts."""

__version__ = "0.1.0"

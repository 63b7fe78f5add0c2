"""Huddle - presence-aware messaging and call-signaling relay."""

__version__ = "1.0.0"

"""Sparring-partner chat backend: conversations, messages, realtime gateway and notifications."""

__version__ = "1.0.0"

"""Data models for sessions, messages, and the wire protocol."""

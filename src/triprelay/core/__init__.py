"""Core session-communication components."""

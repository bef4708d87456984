"""Adaptive Card generator: a single-endpoint chat-completion proxy."""

__version__ = "1.0.0"

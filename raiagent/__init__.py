"""Tool-using AI agent loop, status parsing, profile configuration and a credentials file."""

__version__ = "1.1.4"
# gemini_chat/__init__.py
"""Command-line Gemini chat client with a local conversation store."""

__version__ = "0.1.0"

"""Voice-editable whiteboard graph engine."""

__version__ = "0.3.0"

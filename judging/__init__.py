"""Competition judging coordinator: scoring, submission locks and rankings."""

__version__ = "0.1.0"

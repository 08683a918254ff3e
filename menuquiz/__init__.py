"""Quiz question generation for restaurant staff training."""

__version__ = "0.1.0"

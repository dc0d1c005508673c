"""Desktop focus tracker: records focused windows and summarizes usage."""

__version__ = "0.1.0"

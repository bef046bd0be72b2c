"""Mockup Studio: compose device screenshots into multi-frame strips."""

__version__ = "0.3.0"

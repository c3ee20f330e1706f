"""BASALT — Constituent-driven universe selection."""

__version__ = "0.1.0"

"""Encounter session resolution for the clinical consultation pad."""

__version__ = "1.0.0"

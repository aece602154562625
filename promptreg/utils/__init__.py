"""Utility helpers for promptreg."""

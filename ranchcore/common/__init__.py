"""
Shared utilities for RanchCore (geographic math, retry helpers).
"""

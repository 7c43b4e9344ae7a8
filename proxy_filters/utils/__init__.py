"""Utility helpers for the filter stacks."""

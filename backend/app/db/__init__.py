"""Data-access helpers for participant test progress."""

"""Summarize-and-cache HTTP gateway."""

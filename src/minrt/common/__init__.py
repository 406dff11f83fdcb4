"""Shared helpers: logging, HTTP and cancellation."""

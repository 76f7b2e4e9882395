"""Shared infrastructure: configuration, logging, time and HTTP helpers."""

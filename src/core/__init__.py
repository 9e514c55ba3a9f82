"""Shared infrastructure: errors, logging, resilience."""

"""Shared utilities: config, logging, types, concurrency, time."""

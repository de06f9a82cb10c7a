"""Shared primitives: configuration, errors, logging, time, serialization."""

"""Core infrastructure: configuration, logging, exceptions, event bus, Redis and database."""

"""Infrastructure layer - persistence, Redis and metrics adapters."""

"""Core services: configuration, logging, HTTP fetching and the edge cache."""

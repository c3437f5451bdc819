"""Core domain: models, ports, normalization, aggregation, scrapers."""

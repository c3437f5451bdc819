"""Web framework adapters serving the exporter."""

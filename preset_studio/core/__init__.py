"""
Core infrastructure: settings, structured logging, error taxonomy,
Prometheus metrics and output storage.
"""

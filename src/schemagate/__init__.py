"""schemagate - compatibility analysis for evolving JSON Schemas."""

__version__ = "0.1.0"

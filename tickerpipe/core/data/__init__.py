"""Data layer: schema, ingestion and storage."""

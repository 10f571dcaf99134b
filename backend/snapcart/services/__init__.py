"""Service layer: extraction, parsing, ingestion, storage and analytics."""

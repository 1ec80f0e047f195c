"""Pipeline services: extraction, ingestion, retrieval and chat."""

"""Statement ingestion: markup loading, bank adapters and file validation."""

"""tickerpipe core: models, storage, ingestion and run orchestration."""

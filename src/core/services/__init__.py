"""Application services (orchestration)."""

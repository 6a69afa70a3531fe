"""Core: configuration, domain models, interfaces and the fetch pipeline."""

"""Service layer: task orchestration, providers, catalog, assembly."""

"""Feature modules for the media host orchestrator."""

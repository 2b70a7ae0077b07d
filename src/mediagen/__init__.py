"""mediagen: generation job orchestration over third-party inference providers."""

"""Cost attribution for generation requests."""

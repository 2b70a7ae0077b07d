"""Model catalog and input schema handling."""

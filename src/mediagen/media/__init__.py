"""Media descriptors produced from provider output."""

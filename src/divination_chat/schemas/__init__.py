"""Wire and value models."""

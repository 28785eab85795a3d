"""HTML cleaning and normalization."""

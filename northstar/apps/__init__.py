"""Application entrypoints for NorthStar."""

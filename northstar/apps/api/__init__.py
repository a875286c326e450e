"""HTTP host for the NorthStar pipeline."""

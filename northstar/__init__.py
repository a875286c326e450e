"""NorthStar AI orchestration and resilience core."""

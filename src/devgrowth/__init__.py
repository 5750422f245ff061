"""DevGrowth analytics pipeline."""

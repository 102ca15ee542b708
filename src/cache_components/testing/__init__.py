"""Testing – doubles for exercising code built on the cache engine."""

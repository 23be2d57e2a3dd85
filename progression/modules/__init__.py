"""Domain modules: shared foundations, xp, achievements, stats."""

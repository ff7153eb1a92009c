"""Analysis layer: timeline validation, fraud heuristics, consistency analysis."""

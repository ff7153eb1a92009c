"""Score aggregation and evidence binding."""

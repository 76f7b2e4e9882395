"""Feed storage and multi-feed aggregation."""

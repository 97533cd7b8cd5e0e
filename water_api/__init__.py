"""water_api – HTTP surface for the water-risk engine."""

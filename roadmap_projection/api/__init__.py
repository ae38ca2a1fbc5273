"""HTTP surface of the projection engine."""

"""Cache, query and lifecycle layer of the live catalog."""

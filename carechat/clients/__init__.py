"""HTTP clients for tenant external systems."""

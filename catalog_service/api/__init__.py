"""HTTP surface of the catalog service."""

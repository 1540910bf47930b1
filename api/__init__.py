"""HTTP API for the item bank converter."""

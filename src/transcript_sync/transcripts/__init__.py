"""Upstream transcript domain -- schemas, Fireflies client, naming and PDF rendering."""

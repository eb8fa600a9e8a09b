"""Guided product configurator with a free-text chat co-pilot."""

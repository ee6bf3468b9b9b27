"""Configuration for geolens."""

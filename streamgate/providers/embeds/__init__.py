"""Embed scrapers. Every concrete BaseEmbed subclass defined in a module here is registered at startup."""

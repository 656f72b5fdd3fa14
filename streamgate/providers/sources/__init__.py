"""Source scrapers. Every concrete BaseSource subclass defined in a module here is registered at startup."""

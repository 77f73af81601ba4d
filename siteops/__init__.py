"""siteops - location-gated task lifecycle engine for multi-site operations."""

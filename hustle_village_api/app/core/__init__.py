"""Configuration, persistence, identity and storage adapters."""

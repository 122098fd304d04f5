"""Configuration, logging, persistence, storage and security."""

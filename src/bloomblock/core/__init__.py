"""Configuration and error types shared across bloomblock."""

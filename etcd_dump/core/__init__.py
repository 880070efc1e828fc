"""Configuration, logging, errors and process setup."""

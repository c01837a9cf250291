"""Configuration — pydantic-settings models loaded from env and YAML."""

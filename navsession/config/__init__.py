"""
Configuration Package - schema-based configuration for navigation sessions.

Main components:
- ConfigManager: loads defaults, a JSON file and NAV_* environment variables
- ConfigSchema: type-safe configuration schemas with validation
"""

"""
Configuration module.

Default parameters, YAML-backed configuration loading with layered
precedence, symbol configuration records and their validation.
"""

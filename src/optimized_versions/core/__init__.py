"""Core configuration, errors, logging and path safety."""

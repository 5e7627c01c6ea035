"""Core — domain models, config, engine, and use cases."""

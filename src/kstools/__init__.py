"""kstools - keystore conversion and mutual-TLS client utilities."""

__version__ = "0.1.0"

class TransportError(Exception):
    """The TLS transport for a probe could not be built."""
    pass

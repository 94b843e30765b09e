# errors.py - exceptions raised by the DNS pipeline


class DNSError(Exception):
    pass

class ConfigurationError(DNSError, ValueError):
    # Unsupported process count, or a matrix size the process cube cannot split evenly
    pass

class SourceError(DNSError, ValueError):
    # Matrix source missing, unreadable, or malformed
    pass

# dnsmat/__init__.py

__version__ = "0.1.0"
__all__ = ["pcube", "MatrixSource", "DNSProcess", "dns_matmul",
           "ConfigurationError", "SourceError"] # for explicit export: from dnsmat import *

from .errors import ConfigurationError, SourceError
from .topology import pcube
from .source import MatrixSource
from .dns import DNSProcess, dns_matmul

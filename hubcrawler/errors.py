"""
Error taxonomy for registry crawling
"""


class RegistryError(Exception):
    """Base class for failures talking to the registry"""


class NetworkError(RegistryError):
    """Transport failure or non-2xx response from the registry"""


class DeadlineExceededError(NetworkError):
    """The request-scoped deadline ran out before the call could be made"""


class DecodeError(RegistryError):
    """Registry response body is not the JSON we expected"""


class MissingDigestError(RegistryError):
    """Manifest response carried no Docker-Content-Digest header"""


class ProvenanceDecodeError(RegistryError):
    """The nested v1Compatibility document could not be decoded"""


class ConfigError(Exception):
    """Invalid startup configuration"""

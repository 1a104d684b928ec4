"""Base exception classes for resource engine error handling"""


class ResourceEngineException(Exception):
    """Base exception for all resource engine errors"""
    
    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ResourceEngineException):
    """Raised when a profile, context or filter is missing or malformed"""
    pass


class UpstreamUnavailableError(ResourceEngineException):
    """Raised when the catalog, profile or experiment source cannot be read"""
    
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, details)
        self.details.setdefault("retryable", True)


class ResourceNotFoundError(ResourceEngineException):
    """Raised when a resource is not in the catalog"""
    pass


class ExperimentError(ResourceEngineException):
    """Raised when experiment configuration or assignment fails"""
    pass


class ConfigurationError(ResourceEngineException):
    """Raised when configuration is invalid or missing"""
    pass


class LedgerError(ResourceEngineException):
    """Raised when the interaction ledger cannot be written"""
    pass

class CryOutError(Exception):
    """Base exception for Cry Out"""
    pass

class ConfigurationError(CryOutError):
    """Raised when required settings are missing or invalid"""
    pass

class GatewaySetupError(CryOutError):
    """Raised when the messaging transport cannot be prepared"""
    pass

class TransportError(CryOutError):
    """Raised when an outbound call to an external service fails"""
    pass

class ClassifierError(TransportError):
    """Raised when the content classifier call fails"""
    pass

class PublishError(TransportError):
    """Raised when sending a message through the gateway fails"""
    pass

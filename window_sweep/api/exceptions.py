"""Custom exceptions for metrics provider and trade source operations"""


class MetricsProviderError(Exception):
    """Base exception for all metrics provider errors"""

    pass


class RateLimitError(MetricsProviderError):
    """Raised when the provider signals rate limiting (HTTP 429 or equivalent)"""

    pass


class NetworkError(MetricsProviderError):
    """Raised when communication with the provider fails"""

    pass


class InvalidRequestError(MetricsProviderError):
    """Raised when the provider rejects the request arguments"""

    pass


class TradeSourceError(Exception):
    """Raised when the closed-trade history cannot be queried"""

    pass


class ConfigurationError(Exception):
    """Raised when sweep configuration fails validation"""

    pass

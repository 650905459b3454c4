"""
Engine exceptions
"""

from typing import Optional


class SignalEngineError(Exception):
    """Base error for the signal engine"""


class MarketDataError(SignalEngineError):
    """
    Upstream fetch failure or malformed market-data response.

    Fails only the symbol being processed.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class ConfigurationError(SignalEngineError):
    """Malformed configuration file or value"""

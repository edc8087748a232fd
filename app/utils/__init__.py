"""
Utility modules for the Edovia AI service.
"""
from .logging_config import setup_logging, LogContext, RequestLoggingMiddleware

__all__ = ['setup_logging', 'LogContext', 'RequestLoggingMiddleware']

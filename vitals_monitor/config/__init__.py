"""
Configuration parsing (nginx-like syntax) and live settings.
"""

from .lexer import Lexer, LexerError, Token, TokenType
from .loader import ConfigError, ConfigLoader
from .parser import ConfigParser, ParseError
from .schema import Config
from .settings import SettingChange, Settings, Subscription

__all__ = [
    "Lexer",
    "LexerError",
    "Token",
    "TokenType",
    "ConfigParser",
    "ParseError",
    "Config",
    "ConfigLoader",
    "ConfigError",
    "Settings",
    "SettingChange",
    "Subscription",
]

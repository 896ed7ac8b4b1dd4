"""Exception types raised by the toolkit."""


class BasicV2Error(Exception):
    """Base class for all toolkit errors."""
    pass


class InvalidProgram(BasicV2Error):
    """Raised when a program has no numbered lines to encode."""
    pass


class ArithmeticSyntaxError(BasicV2Error):
    """Raised by the arithmetic evaluator on malformed input."""
    pass


class ConfigError(BasicV2Error):
    """Raised when a configuration value cannot be used."""
    pass


class SerializationError(BasicV2Error):
    """Raised when a serialized document cannot be turned back into objects."""
    pass

"""
Rudimentary type definitions shared across the codebase.

Some of the standard library's classes are generics only in the type-sheds,
but not at runtime (e.g. `logging.LoggerAdapter`), so they are defined here
once in a way usable both by mypy and by the interpreter.
"""
import logging
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    LoggerAdapter = logging.LoggerAdapter[Any]
else:
    LoggerAdapter = logging.LoggerAdapter

# We only promise that it is based on one of the built-in loggable classes.
Logger = Union[logging.Logger, LoggerAdapter]

"""Serial protocol engine for powerbank rental station control boards."""

from .dispatcher import AsciiDispatcher, Dispatcher
from .exceptions import StationError
from .transport.session import AsciiSession, BinarySession

__version__ = "0.1.0"

"""Serial transport: port access and the single-flight request session."""

from .serial_link import list_ports, open_serial_stream
from .session import AsciiSession, BinarySession, Session, SessionState

"""Protocol layer: frame codecs, CRC, command builders, and response parsing."""

from .framing import build_frame, parse_frame, Response, SilenceFramer
from .ascii_framing import build_ascii_frame, parse_ascii_frame, AsciiFrame, DelimiterFramer
from .commands import Command, Opcode, build_command, encode_command

"""Shared helpers."""

from .crc import crc16

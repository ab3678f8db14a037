"""Parsers de uplinks LoRa (TTN, DingNet) y codec del payload binario."""

from .base import DATA_RATE_METRICS, LOCATION_DATA, Parser, format_float, parse_time
from .dingnet import DingNetParser
from .factory import ParserType, create_parser, get_types_list
from .payload import Payload
from .ttn import TTNParser

__all__ = [
    "DATA_RATE_METRICS",
    "LOCATION_DATA",
    "Parser",
    "format_float",
    "parse_time",
    "DingNetParser",
    "ParserType",
    "create_parser",
    "get_types_list",
    "Payload",
    "TTNParser",
]

"""Factory para crear parsers por tipo de proveedor.

Agregar un proveedor = agregar un miembro a ParserType y su entrada
en _PARSERS.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Type, Union

from ..core.domain.errors import SelectionError
from .base import Parser
from .dingnet import DingNetParser
from .ttn import TTNParser

logger = logging.getLogger(__name__)


class ParserType(str, Enum):
    """Formatos de uplink soportados."""
    TTN = "TTN"
    DINGNET = "DingNet"


_PARSERS: Dict[ParserType, Type[Parser]] = {
    ParserType.TTN: TTNParser,
    ParserType.DINGNET: DingNetParser,
}


def get_types_list() -> List[str]:
    """Nombres de los tipos soportados (para el CLI)."""
    return [t.value for t in ParserType]


def resolve_parser_type(value: Union[ParserType, str]) -> ParserType:
    """Resuelve un ParserType desde el enum o su nombre (case-insensitive)."""
    if isinstance(value, ParserType):
        return value
    if isinstance(value, str):
        wanted = value.strip().lower()
        for parser_type in ParserType:
            if wanted in (parser_type.value.lower(), parser_type.name.lower()):
                return parser_type
    raise SelectionError(f"[Parser Factory] incorrect parser type: {value!r}")


def create_parser(parser_type: Union[ParserType, str], metric_name: str) -> Parser:
    """Crea el parser del tipo pedido.

    Raises:
        SelectionError: tipo desconocido
        ValidationError: metric_name vacío
    """
    resolved = resolve_parser_type(parser_type)
    parser_cls = _PARSERS.get(resolved)
    if parser_cls is None:
        raise SelectionError(f"[Parser Factory] no parser registered for {resolved.value}")

    parser = parser_cls(metric_name)
    logger.debug("[Parser Factory] created %s for metric %s", parser_cls.__name__, metric_name)
    return parser

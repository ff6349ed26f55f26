from .decoder import Decoder, DecoderOpts, PendingReference
from .entities import HTML5_ENTITIES, Entity, EntityTable
from .errors import DecoderFinishedError, ParseError, StrictModeError
from .escape import escape, unescape
from .stream import EscapeWriter, UnescapeWriter, iter_unescape

__all__ = [
    "HTML5_ENTITIES",
    "Decoder",
    "DecoderFinishedError",
    "DecoderOpts",
    "Entity",
    "EntityTable",
    "EscapeWriter",
    "ParseError",
    "PendingReference",
    "StrictModeError",
    "UnescapeWriter",
    "escape",
    "iter_unescape",
    "unescape",
]

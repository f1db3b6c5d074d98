# This file makes this a Python package

from .exceptions import (
    ReplayDatError,
    RegistryConfigError,
    EncodeError,
    EncodeErrorKind,
    EncodeFailure,
)
from .frames import (
    CustomArgs,
    FieldListArgs,
    SingleFieldArgs,
    FrameHandler,
    FrameRegistry,
)
from .actions import FRAME_HANDLERS, default_registry
from .transcoder import (
    EncodeResult,
    parse_replay_dat,
    get_replay_dat_bytes,
    canonicalize,
    canonicalize_text,
)
from .config import TranscodeConfig

__all__ = [
    # Errors
    "ReplayDatError",
    "RegistryConfigError",
    "EncodeError",
    "EncodeErrorKind",
    "EncodeFailure",
    # Frame handlers
    "CustomArgs",
    "FieldListArgs",
    "SingleFieldArgs",
    "FrameHandler",
    "FrameRegistry",
    "FRAME_HANDLERS",
    "default_registry",
    # Transcoding
    "EncodeResult",
    "parse_replay_dat",
    "get_replay_dat_bytes",
    "canonicalize",
    "canonicalize_text",
    "TranscodeConfig",
]

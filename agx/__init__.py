# Public API, importable as ``from agx import ...``
from .common import AGXException, AGXIOError, AGXFormatError, AGXIndexError, AGXConfigError  # noqa: F401
from .datatypes import DataType, TypeInfo, TypeRegistry, REGISTRY  # noqa: F401
from .store import Param, ParamStore  # noqa: F401
from .writer import Encoder, write, to_bytes  # noqa: F401
from .reader import Header, ParamView, Reader, ReaderState, read  # noqa: F401

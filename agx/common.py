import sys, yaml


AGX_MAGIC          = b"AGXB"
AGX_VERSION        = 1
AGX_ENDIAN_MARKER  = 0x01020304
AGX_CONFIG_ENVVAR  = "AGX_CONFIG"

HOST_BYTEORDER     = sys.byteorder


class AGXException(Exception):
    pass


class AGXIOError(AGXException):
    """ A source or destination could not be opened or created. """


class AGXFormatError(AGXException):
    """ The bytes being decoded are not a well-formed AGXB stream. """


class AGXIndexError(AGXException):
    """ A time step index is out of range and the store is strict. """


class AGXConfigError(AGXException):
    pass


def byteorder_prefix(byteorder: str) -> str:
    """
    Returns the struct format prefix for "little" or "big".
    """

    if byteorder == "little":
        return '<'
    if byteorder == "big":
        return '>'

    raise ValueError(f"Unknown byte order '{byteorder}', expected 'little' or 'big'.")


def opposite_byteorder(byteorder: str) -> str:
    return "big" if byteorder == "little" else "little"


def file_open_binary(filepath: str, mode: str):
    try:
        return open(filepath, mode)
    except OSError as exc:
        raise AGXIOError(f'Failed to open "{filepath}": {exc}') from exc


def file_write(filepath: str, content: str):
    try:
        with open(filepath, "w") as f:
            f.write(content)
    except OSError as exc:
        raise AGXIOError(f'Failed to write to "{filepath}": {exc}') from exc


def file_load_yaml(filepath: str):
    try:
        with open(filepath, "r") as f:
            return yaml.safe_load(f)
    except OSError as exc:
        raise AGXIOError(f'Failed to read from "{filepath}": {exc}') from exc
    except yaml.YAMLError as exc:
        raise AGXConfigError(f'Failed to load YAML from "{filepath}": {exc}') from exc


def file_dump_yaml(filepath: str, data) -> None:
    try:
        with open(filepath, "w") as f:
            yaml.safe_dump(data, f)
    except OSError as exc:
        raise AGXIOError(f'Failed to dump YAML to "{filepath}": {exc}.') from exc


def isspace(s: str) -> bool:
    """
    Returns whether a string, s, is empty, whitespace, or None.
    """

    if s is None:
        return True

    return len(s.strip()) == 0


def format_list_to_string(arr: list, item_style=None, empty=None):
    if empty is None:
        empty = "nothing"

    pre, post = "", ""
    if item_style is not None:
        pre  = f"[{item_style}]"
        post = f"[/{item_style}]"

    if len(arr) == 0:
        return f"{pre}{empty}{post}"

    if len(arr) == 1:
        return f"{pre}{arr[0]}{post}"

    if len(arr) == 2:
        return f"{pre}{arr[0]}{post} and {pre}{arr[1]}{post}"

    lhs = ', '.join([ f"{pre}{e}{post}" for e in arr[:-1]])
    rhs = f", and {pre}{arr[-1]}{post}"

    return lhs + rhs


def endian_str(little: bool) -> str:
    return "little-endian" if little else "big-endian"

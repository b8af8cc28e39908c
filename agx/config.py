import os, typing, dataclasses

from .common    import AGX_CONFIG_ENVVAR, AGXConfigError, file_load_yaml, file_dump_yaml, isspace
from .datatypes import REGISTRY, TypeInfo, TypeRegistry


BYTEORDER_CHOICES = ("native", "little", "big")


@dataclasses.dataclass
class AGXConfig:
    strict:    bool = False
    byteorder: str  = "native"
    verbose:   bool = False
    types:     typing.List[dict] = dataclasses.field(default_factory=list)

    @staticmethod
    def from_dict(d: dict):
        """ Create an AGXConfig object from a dictionary whose keys are a
            subset of the fields of AGXConfig """
        r = AGXConfig()

        names   = { field.name for field in dataclasses.fields(AGXConfig) }
        unknown = sorted(set(d.keys()) - names)
        if unknown:
            raise AGXConfigError(f"Unknown configuration key(s): {', '.join(unknown)}.")

        for field in dataclasses.fields(AGXConfig):
            if field.name in d:
                setattr(r, field.name, d[field.name])

        if r.byteorder not in BYTEORDER_CHOICES:
            raise AGXConfigError(f"Invalid byteorder '{r.byteorder}', expected one of {', '.join(BYTEORDER_CHOICES)}.")

        for entry in r.types:
            if not isinstance(entry, dict) or not {"name", "id", "size"} <= set(entry.keys()):
                raise AGXConfigError(f"Each entry of 'types' needs a name, an id and a size, got {entry}.")

        return r

    def items(self) -> typing.Iterable[typing.Tuple[str, typing.Any]]:
        return dataclasses.asdict(self).items()

    def resolve_byteorder(self) -> typing.Optional[str]:
        """ Returns None for the host's native order, else 'little' or 'big'. """
        return None if self.byteorder == "native" else self.byteorder

    def make_registry(self) -> TypeRegistry:
        """ Returns the default registry, extended by the 'types' entries.
            Entries may add ids but not redefine the standard ones. """
        if not self.types:
            return REGISTRY

        extra = []
        for entry in self.types:
            name = str(entry["name"]).upper()
            if not name.startswith("ANARI_"):
                name = f"ANARI_{name}"

            type_id = int(entry["id"])
            if type_id in REGISTRY:
                raise AGXConfigError(f"Type {name} reuses the id of {REGISTRY.name_of(type_id)} ({type_id}).")

            extra.append(TypeInfo(type_id=type_id, name=name, size=int(entry["size"])))

        try:
            return REGISTRY.extended(extra)
        except ValueError as exc:
            raise AGXConfigError(str(exc)) from exc

    def __str__(self) -> str:
        """ Returns a one-line summary like "strict=off byteorder=native verbose=off types=0" """
        def fmt(v: typing.Any) -> str:
            if isinstance(v, bool):
                return "on" if v else "off"
            if isinstance(v, list):
                return str(len(v))
            return str(v)

        return ' '.join(f"{k}={fmt(v)}" for k, v in self.items())


def load(filepath: str = None) -> AGXConfig:
    """ Loads the configuration from filepath, falling back to the file named
        by $AGX_CONFIG. Without either, the defaults are returned. """
    if isspace(filepath):
        filepath = os.environ.get(AGX_CONFIG_ENVVAR)

    if isspace(filepath):
        return AGXConfig()

    d = file_load_yaml(filepath)
    if d is None:
        return AGXConfig()
    if not isinstance(d, dict):
        raise AGXConfigError(f'Configuration file "{filepath}" must contain a mapping.')

    return AGXConfig.from_dict(d)


def save(filepath: str, config: AGXConfig) -> None:
    file_dump_yaml(filepath, dataclasses.asdict(config))


gCFG: AGXConfig = AGXConfig()
gARG: dict      = {}

_NO_DEFAULT = object()


def ARG(arg: str, dflt: typing.Any = _NO_DEFAULT) -> typing.Any:
    """ Returns a parsed command line argument. Without dflt, asking for an
        argument the current command does not define raises KeyError. """
    if arg in gARG:
        return gARG[arg]
    if dflt is not _NO_DEFAULT:
        return dflt

    raise KeyError(f"{arg} is not an argument.")


def CFG() -> AGXConfig:
    return gCFG


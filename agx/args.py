import argparse

from .config import BYTEORDER_CHOICES
from .common import format_list_to_string


def parse(argv=None) -> dict:
    parser = argparse.ArgumentParser(
        prog="agx",
        description="""\
Inspect and produce AGXB dumps of animated geometry parameters. An AGXB file \
holds the constant parameters of an object and its per-time-step parameters. \
To get started, run agx info -h.""",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parsers = parser.add_subparsers(dest="command")

    info  = parsers.add_parser(name="info", help="Print the header of an AGXB file.",            formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    dump  = parsers.add_parser(name="dump", help="List every parameter record of an AGXB file.", formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    tojs  = parsers.add_parser(name="json", help="Render an AGXB file as JSON.",                 formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    demo  = parsers.add_parser(name="demo", help="Write the animated quad sample.",              formatter_class=argparse.ArgumentDefaultsHelpFormatter)

    def add_common_arguments(p, mask = None):
        if mask is None:
            mask = ""

        p.add_argument("-c", "--config", metavar="CONFIG", type=str, default=None, help="YAML configuration file (defaults to $AGX_CONFIG).")
        p.add_argument("-v", "--verbose", action="store_true", default=None, help="Print diagnostic messages.")

        if "s" not in mask:
            p.add_argument(   "--strict", action="store_true",  default=None,             help="Reject out-of-range time step indices instead of clamping them.")
            p.add_argument("--no-strict", action="store_false", dest="strict",            help="Clamp out-of-range time step indices.")

        if "b" not in mask:
            p.add_argument("-b", "--byteorder", choices=BYTEORDER_CHOICES, type=str.lower, default=None,
                           help=f"Byte order of written files. Allowed values are: {format_list_to_string(list(BYTEORDER_CHOICES))}.")

    # === INFO ===
    add_common_arguments(info, "sb")
    info.add_argument("file", metavar="FILE", type=str, help="AGXB file.")

    # === DUMP ===
    add_common_arguments(dump, "sb")
    dump.add_argument("file", metavar="FILE", type=str, help="AGXB file.")
    dump.add_argument("-d", "--data", action="store_true", default=False, help="Also print decoded values.")

    # === JSON ===
    add_common_arguments(tojs, "sb")
    tojs.add_argument("file", metavar="FILE", type=str, help="AGXB file.")
    tojs.add_argument("-o", "--output", metavar="OUTPUT", type=str, default=None, help="Write the JSON here instead of printing it.")

    # === DEMO ===
    add_common_arguments(demo)
    demo.add_argument("output", metavar="OUTPUT", type=str, help="Destination AGXB file.")
    demo.add_argument("-n", "--time-steps", metavar="N", type=int, default=4, help="Number of time steps.")

    args: dict = vars(parser.parse_args(argv))

    if args["command"] is None:
        parser.print_help()
        parser.exit()

    return args

#!/usr/bin/env python3

import sys

from .         import args, commands, config
from .config   import ARG
from .common   import AGXException
from .printer  import cons


def __configure():
    cfg = config.load(ARG("config", None))

    for key in ("strict", "verbose", "byteorder"):
        value = config.gARG.get(key)
        if value is not None:
            setattr(cfg, key, value)

    config.gCFG  = cfg
    cons.verbose = cfg.verbose

    cons.debug(f"Configuration: {cfg}")


def __run():
    {"info": commands.info, "dump": commands.dump,
     "json": commands.to_json, "demo": commands.demo
    }[ARG("command")]()


def main(argv=None) -> int:
    try:
        config.gARG = args.parse(argv)

        __configure()
        __run()

    except AGXException as exc:
        cons.error(exc)
        return 1
    except KeyboardInterrupt:
        return 130
    except Exception as exc:
        cons.print_exception()
        cons.error(f"An unexpected exception occurred: {exc}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

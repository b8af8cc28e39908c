import rich.table
from rich.markup import escape

from .        import demo as sample, writer
from .common  import AGX_MAGIC, AGXFormatError, endian_str
from .config  import ARG, CFG
from .reader  import ParamView, Reader
from .store   import ParamStore
from .render  import render_param, format_scalars
from .jsondump import dumps, write_json
from .printer import cons


def _open(filepath: str) -> Reader:
    return Reader(filepath, registry=CFG().make_registry())


def _payload_byteorder(r: Reader) -> str:
    return "little" if r.get_header().file_little_endian else "big"


def info():
    with _open(ARG("file")) as r:
        hdr = r.get_header()

        table = rich.table.Table(title=f"[bold]{escape(ARG('file'))}[/bold]", show_header=False, box=rich.table.box.SIMPLE)
        table.add_column("Field", justify="left")
        table.add_column("Value", justify="left")

        table.add_row("magic",              AGX_MAGIC.decode("ascii"))
        table.add_row("version",            str(hdr.version))
        table.add_row("endian marker",      f"0x{hdr.endian_marker:08X}")
        table.add_row("host endianness",    endian_str(hdr.host_little_endian))
        table.add_row("file endianness",    endian_str(hdr.file_little_endian))
        table.add_row("byte swap needed",   "yes" if hdr.need_byte_swap else "no")
        table.add_row("object type",        r.registry.name_of(hdr.object_type))
        table.add_row("subtype",            escape(repr(r.get_subtype())))
        table.add_row("time steps",         f"[bold cyan]{hdr.time_steps}[/bold cyan]")
        table.add_row("constant params",    f"[bold cyan]{hdr.constant_param_count}[/bold cyan]")

        cons.raw.print(table)


def _describe(r: Reader, view: ParamView, with_data: bool) -> str:
    registry = r.registry
    name     = escape(view.name)

    if view.is_array:
        s = (f"[magenta]{name}[/magenta] array of {view.element_count} "
             f"{registry.name_of(view.element_type)} ({view.data_bytes} bytes)")
    else:
        s = f"[magenta]{name}[/magenta] {registry.name_of(view.type)} ({view.data_bytes} bytes)"

    if not with_data:
        return s

    values = render_param(view.is_array, view.element_type if view.is_array else view.type,
                          view.data, view.element_count, registry, _payload_byteorder(r))
    if view.is_array:
        text = ", ".join(f"[{format_scalars(e)}]" for e in values)
    else:
        text = format_scalars(values)

    return f"{s} = {escape(text)}"


def dump():
    with_data = ARG("data")

    with _open(ARG("file")) as r:
        hdr = r.get_header()

        cons.print(f"[bold]AGXB v{hdr.version}[/bold]: {hdr.time_steps} time step(s), "
                   f"{hdr.constant_param_count} constant(s) (swap={'yes' if hdr.need_byte_swap else 'no'})")
        cons.print(f"   Type: {r.registry.name_of(hdr.object_type)}")
        cons.print(f"Subtype: {escape(repr(r.get_subtype()))}")
        cons.print()

        with cons.section("[bold]Constants[/bold]"):
            r.reset_constants()
            while True:
                rc = r.next_constant()
                if rc < 0:
                    raise AGXFormatError("Error reading constants.")
                if rc == 0:
                    break
                cons.print(_describe(r, r.view, with_data))

        r.reset_time_steps()
        while True:
            rc, index, param_count = r.begin_next_time_step()
            if rc < 0:
                raise AGXFormatError("Error reading time step header.")
            if rc == 0:
                break

            with cons.section(f"[bold]Time step {index}[/bold]: {param_count} param(s)"):
                while True:
                    rc = r.next_time_step_param()
                    if rc < 0:
                        raise AGXFormatError(f"Error reading parameters of time step {index}.")
                    if rc == 0:
                        break
                    cons.print(_describe(r, r.view, with_data))


def to_json():
    with _open(ARG("file")) as r:
        store = r.read_store()

    if ARG("output") is not None:
        write_json(store, ARG("output"))
        cons.print(f"Wrote [magenta]{escape(ARG('output'))}[/magenta].")
    else:
        cons.raw.print(dumps(store), markup=False, highlight=False, soft_wrap=True, end="")


def demo():
    byteorder = CFG().resolve_byteorder()
    store     = sample.build_store(ARG("time_steps"), ParamStore(registry=CFG().make_registry(),
                                                             strict=CFG().strict, byteorder=byteorder))

    n = writer.write(store, ARG("output"), byteorder)

    cons.print(f"Wrote [magenta]{escape(ARG('output'))}[/magenta] ({n} bytes).")

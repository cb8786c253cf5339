import asyncio
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from tsbean.cli.logs import configure_logging
from tsbean.config import CompilerSettings, ConfigError, load_settings
from tsbean.core.compile import run_compile
from tsbean.core.diagnostics import Diagnostic, MissingInputError, UnmappableTypeError
from tsbean.watcher.watchfiles_adapter import WatchfilesWatcher

logger = logging.getLogger(__name__)
console = Console()

_REMEDIATION = (
    "To fix: map the type to a schema type under [type_mappings] in tsbean.toml "
    '(for example  Vector3 = "Vector3"), list it under external_types, '
    "or define the missing type in the schema's own primitive catalog. "
    "A declaration that is not exported (or not registered) must be exported or registered first."
)

_PROBLEM_LABELS = {
    "unmappable-type": "unmappable type",
    "ambiguous-parent": "ambiguous parent",
    "unemitted-reference": "not exported or registered",
}


def compile_schema(
    force: Annotated[bool, typer.Option("--force", help="Ignore the cache and regenerate every entry.")] = False,
    registrations: Annotated[
        Path | None, typer.Option(help="Registration file listing the declarations to compile.")
    ] = None,
    input_dir: Annotated[
        Path | None, typer.Option("--input", help="Directory to scan recursively; takes precedence over --registrations.")
    ] = None,
    output: Annotated[Path | None, typer.Option(help="Schema document to write.")] = None,
    module: Annotated[str | None, typer.Option(help="Module name of the emitted document.")] = None,
    config: Annotated[Path | None, typer.Option(help="Path to a tsbean.toml settings file.")] = None,
    watch: Annotated[bool, typer.Option("--watch", help="Recompile whenever a TypeScript source changes.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
) -> None:
    """Compile TypeScript declarations into the schema document."""
    configure_logging(verbose)
    try:
        settings = load_settings(config)
    except ConfigError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1) from exc

    overrides = {"registrations": registrations, "input": input_dir, "output": output, "module": module}
    settings = settings.model_copy(update={key: value for key, value in overrides.items() if value is not None})

    succeeded = compile_once(settings, force)
    if watch:
        _watch(settings)
        return
    if not succeeded:
        raise typer.Exit(1)


def compile_once(settings: CompilerSettings, force: bool = False) -> bool:
    try:
        result = run_compile(settings, force=force)
    except MissingInputError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return False
    except UnmappableTypeError as exc:
        print_diagnostics(exc.diagnostics)
        console.print(f"[red]Compilation failed[/red]; {settings.output} was not modified.")
        return False
    console.print(
        f"[green]Wrote[/green] {result.output} "
        f"({len(result.entries)} entries: {result.regenerated} regenerated, {result.reused} reused)"
    )
    return True


def print_diagnostics(diagnostics: list[Diagnostic]) -> None:
    grouped: dict[str, list[Diagnostic]] = {}
    for diagnostic in diagnostics:
        grouped.setdefault(diagnostic.declaration, []).append(diagnostic)

    console.print(f"[red]{len(diagnostics)} problem(s) in {len(grouped)} declaration(s):[/red]")
    for declaration, items in grouped.items():
        table = Table(title=escape(declaration), title_justify="left", show_lines=False)
        table.add_column("field")
        table.add_column("type")
        table.add_column("problem")
        for item in items:
            problem = _PROBLEM_LABELS[item.kind]
            table.add_row(escape(item.field or "-"), escape(item.type_text), problem)
        console.print(table)
    console.print(_REMEDIATION, markup=False)


def _watch(settings: CompilerSettings) -> None:
    directory = settings.input or Path.cwd()
    output = settings.output.resolve()

    async def _on_change(paths: set[Path]) -> None:
        logger.debug("Changed: %s", ", ".join(sorted(str(p) for p in paths)))
        await asyncio.to_thread(compile_once, settings)

    async def _run() -> None:
        watcher = WatchfilesWatcher(directory, _on_change, ignore=lambda path: path.resolve() == output)
        await watcher.start()
        try:
            await watcher.wait()
        finally:
            await watcher.stop()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("Stopped watching.")

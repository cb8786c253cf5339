import typer

from tsbean.cli.compile import compile_schema

app = typer.Typer(
    name="tsbean",
    help="tsbean: compile TypeScript data declarations into a bean/enum schema document.",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.command("compile")(compile_schema)


def main() -> None:
    app()

"""CLI entry point for drive-pool."""
import logging

import typer

from .commands import admin, config, info
from .commands.delete import delete
from .commands.transfer import cat, upload

app = typer.Typer()
app.command("info")(info.info)
app.add_typer(config.app, name="config")
app.command("delete")(delete)
app.command("upload")(upload)
app.command("cat")(cat)
app.command("shortcut")(admin.shortcut)
app.command("drives")(admin.drives)
app.command("untrash")(admin.untrash)
app.command("copyid")(admin.copyid)
app.command("exportformats")(admin.export_formats)
app.command("importformats")(admin.import_formats)


@app.callback()
def setup(
    log_level: str = typer.Option("WARN", "--log-level", "-l", help="Logging level (e.g., DEBUG, INFO, WARN, ERROR)")
):
    """Virtual Drive spread across many service accounts."""
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        typer.echo(f"Invalid log level: {log_level}", err=True)
        raise typer.Exit(1)
    logging.basicConfig(level=numeric_level)


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()

"""Config commands to inspect and update settings."""
import json
import typer
from typing import Optional
from drive_pool.config import load_settings, save_settings
from drive_pool.exceptions import ConfigError

app = typer.Typer(help="Inspect or update settings.")


@app.command("get")
def get(
    key: Optional[str] = typer.Argument(None, help="Setting to show (e.g. chunk_size, key_file)")
):
    """Show current settings, or a single one."""
    try:
        settings = load_settings()
    except ConfigError as e:
        typer.echo(f"✗ {e}", err=True)
        raise typer.Exit(1)

    values = settings.to_dict()
    if key is None:
        typer.echo(json.dumps(values, indent=2))
    elif key in values:
        typer.echo(values[key])
    else:
        typer.echo(f"✗ Unknown setting: {key}", err=True)
        raise typer.Exit(1)


@app.command("set")
def set_(
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Upload chunk size, power of 2 >= 256k"),
    key_file: Optional[str] = typer.Option(None, "--key-file", help="Path to the credential bundle"),
    proxy_url: Optional[str] = typer.Option(None, "--proxy-url", help="Proxy for Drive traffic"),
    use_trash: Optional[bool] = typer.Option(None, "--use-trash/--no-use-trash", help="Trash instead of deleting"),
    delete_concurrency: Optional[int] = typer.Option(None, "--delete-concurrency", help="Parallel calls during delete"),
    impersonate: Optional[str] = typer.Option(None, "--impersonate", help="User to impersonate with the service accounts"),
    skip_unreachable: Optional[bool] = typer.Option(
        None, "--skip-unreachable/--no-skip-unreachable",
        help="Skip storage accounts whose quota query fails"
    )
):
    """
    Update settings in the settings file.

    Only the given options change; environment overrides are not saved.
    """
    try:
        settings = load_settings(use_env=False)
        settings.update(
            chunk_size=chunk_size,
            key_file=key_file,
            proxy_url=proxy_url,
            use_trash=use_trash,
            delete_concurrency=delete_concurrency,
            impersonate=impersonate,
            skip_unreachable=skip_unreachable
        )
        path = save_settings(settings)
    except ConfigError as e:
        typer.echo(f"✗ {e}", err=True)
        raise typer.Exit(1)
    typer.echo(f"✓ Settings saved to {path}")

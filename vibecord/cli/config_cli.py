"""Configuration management CLI for vibecord."""

import json
from typing import Any, Dict, Optional

import typer
import yaml

from vibecord.config import get_settings, resolve_config_file_path
from vibecord.errors import ConfigError

app = typer.Typer(help="vibecord configuration management")

# Sensitive key names to mask
SENSITIVE_KEY_NAMES = ["bot_token", "token", "password", "secret"]

# Template for initial config.yaml
INIT_CONFIG_TEMPLATE = """# vibecord configuration
# Environment variables override this file, e.g. VIBECORD_CODEX__BINARY=/opt/codex

codex:
  binary: codex
  pty_helper: script
  sessions_dir: ~/.codex/sessions
  status_timeout_seconds: 15
  compact_timeout_seconds: 60
  default_interactive_timeout_seconds: 90

session:
  state_file: ~/.local/state/vibecord/sessions.json

logging:
  level: INFO
  victoria_logs_enabled: false
  victoria_logs_url: http://localhost:9428

discord:
  bot_token: ""
  # Channel mode needs both guild_id and category_id
  guild_id: ""
  category_id: ""
"""


def _mask_sensitive(data: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively mask sensitive values in a dictionary."""
    result: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            result[key] = _mask_sensitive(value)
        elif isinstance(value, str) and key.lower() in SENSITIVE_KEY_NAMES and value:
            result[key] = "***"
        else:
            result[key] = value
    return result


def _get_config_value(config: Dict[str, Any], key: str) -> Any:
    """Look up a dot-path key such as ``codex.binary``."""
    current: Any = config
    for part in key.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return None
    return current


@app.command()
def init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing file"),
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Config file path"
    ),
):
    """Write a starter config.yaml."""
    path = resolve_config_file_path(config_file)
    try:
        if path.exists() and not force:
            typer.echo(f"[SKIP] Skipping {path} (already exists)")
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(INIT_CONFIG_TEMPLATE)
        path.chmod(0o600)  # holds the bot token
        typer.echo(f"[OK] Created {path}")
    except OSError as e:
        typer.echo(f"[ERROR] Failed to initialize configuration: {e}", err=True)
        raise typer.Exit(1)


@app.command()
def show(
    key: Optional[str] = typer.Argument(
        None, help="Specific configuration key to show"
    ),
    format: str = typer.Option("yaml", "--format", "-f", help="Output format (yaml/json)"),
):
    """Show current configuration with secrets masked."""
    try:
        settings = get_settings()
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    config_dict = _mask_sensitive(settings.model_dump(mode="json"))

    if key:
        value = _get_config_value(config_dict, key)
        if value is None:
            typer.echo(f"[ERROR] Key '{key}' not found", err=True)
            raise typer.Exit(1)
        if isinstance(value, (dict, list)):
            typer.echo(json.dumps(value, indent=2))
        else:
            typer.echo(value)
        return

    if format == "json":
        typer.echo(json.dumps(config_dict, indent=2))
    else:
        output = yaml.safe_dump(config_dict, default_flow_style=False, allow_unicode=True)
        typer.echo(output.replace("'***'", "***").rstrip())

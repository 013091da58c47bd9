"""Shared CLI helpers."""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from ..config import Config
from ..log import console


@dataclass
class State:
    """Values from the global options."""

    config_path: Optional[Path] = None

    def config(self) -> Config:
        return Config(self.config_path)


def get_state(ctx: typer.Context) -> State:
    return ctx.obj if isinstance(ctx.obj, State) else State()


def fail(message: str) -> None:
    """Print a fatal error and exit 1."""
    console.print(f"[red]❌ {message}[/red]")
    raise typer.Exit(1)

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, Optional

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_history(samples: list[Dict[str, Any]], limit: Optional[int] = None) -> None:
    echo_heading("Occupancy History")
    shown = samples if limit is None else samples[:limit]
    if not shown:
        typer.echo("No samples recorded.")
        return
    for sample in shown:
        typer.echo(f"{sample.get('timestamp')}  {str(sample.get('occupancy')):>4}  (#{sample.get('id')})")
    if len(shown) < len(samples):
        typer.echo(f"... {len(samples) - len(shown)} older samples not shown.")


def render_window(moment: datetime, is_open: bool, next_open: datetime) -> None:
    echo_heading("Operating Window")
    echo_key_values(
        [
            ("at", moment.isoformat()),
            ("polling", "active" if is_open else "inactive"),
            ("next_open", next_open.isoformat()),
        ]
    )

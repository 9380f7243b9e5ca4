import json
import logging
import os
from pathlib import Path

import requests
import typer

from wordmimic.analytics.chain import to_shape
from wordmimic.config import settings
from wordmimic.services import LearningSession, ProgressReport


app = typer.Typer()
BASE = os.getenv("API_BASE", "http://127.0.0.1:8000")
API_KEY = os.getenv("API_KEY")




def _headers():
    h = {}
    if API_KEY:
        h["X-API-Key"] = API_KEY
    return h


def _show_progress(report: ProgressReport):
    typer.echo(f"{report.label}: {report.percent_complete:5.1f}%", err=True)


def _learn_local(examples: Path, seed: int, verbose: bool) -> LearningSession:
    session = LearningSession(seed=seed, on_progress=_show_progress if verbose else None)
    session.learn_blocking(examples.read_text(encoding="utf-8"))
    return session


@app.callback()
def main(log_level: str = typer.Option(settings.log_level)):
    logging.basicConfig(level=log_level.upper())


@app.command()
def imitate(examples: Path,
            count: int = typer.Option(settings.imitation_count),
            min_len: int = typer.Option(settings.word_length_min),
            max_len: int = typer.Option(settings.word_length_max),
            seed: int = typer.Option(settings.seed),
            verbose: bool = typer.Option(False, "--verbose", "-v")):
    session = _learn_local(examples, seed, verbose)
    for word in session.imitate(count, min_len, max_len):
        typer.echo(word)


@app.command()
def chain(examples: Path):
    session = _learn_local(examples, settings.seed, False)
    typer.echo(json.dumps(to_shape(session.chain), ensure_ascii=True, indent=2))


@app.command()
def learn(examples: Path):
    r = requests.post(f"{BASE}/learn", json={"text": examples.read_text(encoding="utf-8")}, headers=_headers())
    typer.echo(r.json())


@app.command()
def fetch(count: int = typer.Option(settings.imitation_count),
          min_len: int = typer.Option(settings.word_length_min),
          max_len: int = typer.Option(settings.word_length_max)):
    r = requests.get(f"{BASE}/imitate", params={"count": count, "min_len": min_len, "max_len": max_len},
                     headers=_headers())
    typer.echo(r.json())


if __name__ == "__main__":
    app()

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, TextIO

from loguru import logger

from burn_watch.config import AppSettings
from burn_watch.db import BurnRecord, burn_exists, make_session_factory, session_scope
from burn_watch.errors import ConfigurationError
from burn_watch.models import BurnEvent


class Sink(Protocol):
    def emit(self, event: BurnEvent) -> None: ...


@dataclass
class StdoutSink:
    """One JSON object per line."""

    stream: TextIO = field(default_factory=lambda: sys.stdout)

    def emit(self, event: BurnEvent) -> None:
        self.stream.write(event.to_json() + "\n")
        self.stream.flush()


@dataclass
class JsonlFileSink:
    path: Path

    def emit(self, event: BurnEvent) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(event.to_json() + "\n")


@dataclass
class DatabaseSink:
    SessionFactory: object

    def emit(self, event: BurnEvent) -> None:
        # Dedupe by (signature, instruction) so replays after a restart are harmless
        with session_scope(self.SessionFactory) as s:
            if burn_exists(s, event.signature, event.instruction):
                logger.debug("Burn {}#{} already stored", event.signature, event.instruction)
                return
            s.add(BurnRecord.from_event(event))


def build_sinks(settings: AppSettings, SessionFactory=None) -> list[Sink]:
    sinks: list[Sink] = []
    for name in settings.sink_names():
        if name == "stdout":
            sinks.append(StdoutSink())
        elif name == "file":
            sinks.append(JsonlFileSink(path=Path(settings.output_path)))
        elif name == "database":
            sinks.append(DatabaseSink(SessionFactory or make_session_factory(settings.database_url)))
        else:
            raise ConfigurationError(f"unknown sink: {name}")
    return sinks

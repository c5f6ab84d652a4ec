"""Local CLI REPL for garden chat."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from plantops.errors import NotFoundError

if TYPE_CHECKING:
    from plantops.core import PlantOps

logger = logging.getLogger(__name__)

HELP_TEXT = """\
Commands:
  /focus NAME   talk about one plant (its full history is loaded)
  /garden       talk about the whole garden
  /plants       list plants
  /help         show this help
  exit          quit"""


class CLIConnector:
    """Interactive REPL — reads from stdin, streams replies to stdout."""

    def __init__(self, hub: PlantOps) -> None:
        self._hub = hub
        self._running = False

    async def start(self, focus: str | None = None) -> None:
        self._running = True
        loop = asyncio.get_running_loop()

        print("PlantOps Garden Assistant (type 'exit' or Ctrl+C to quit, /help for commands)")
        print("-" * 48)

        if focus:
            self._handle_command(f"/focus {focus}")
        else:
            self._hub.focus(None)

        while self._running:
            try:
                line = await loop.run_in_executor(None, self._read_input)
            except (EOFError, KeyboardInterrupt):
                print("\nBye!")
                break

            if line is None or line.strip().lower() in ("exit", "quit"):
                print("Bye!")
                break

            text = line.strip()
            if not text:
                continue
            if text.startswith("/"):
                self._handle_command(text)
                continue

            await self.reply(text)

    def _read_input(self) -> str | None:
        try:
            sys.stdout.write("\nYou: ")
            sys.stdout.flush()
            raw = sys.stdin.buffer.readline()
            if not raw:
                return None
            return raw.decode("utf-8", errors="replace").rstrip("\n")
        except EOFError:
            return None

    def _handle_command(self, text: str) -> None:
        cmd, _, arg = text.partition(" ")
        arg = arg.strip()
        if cmd == "/focus" and arg:
            try:
                plant = self._hub.store.find(arg)
            except NotFoundError:
                print(f"No plant named '{arg}'. Try /plants.")
                return
            self._hub.focus(plant)
            print(f"[focused on {plant.name}]")
        elif cmd == "/garden":
            self._hub.focus(None)
            print("[whole garden]")
        elif cmd == "/plants":
            for plant in self._hub.store.list():
                latest = plant.latest_entry
                score = latest.health_score if latest else "-"
                print(f"  {plant.name} ({plant.species or '?'}) health={score}")
        else:
            print(HELP_TEXT)

    async def reply(self, text: str) -> None:
        sys.stdout.write("\nPlantOps: ")
        async for fragment in self._hub.send(text):
            sys.stdout.write(fragment)
            sys.stdout.flush()
        sys.stdout.write("\n")

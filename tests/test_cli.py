"""Tests for the CLI REPL connector and argument parsing."""

import pytest
from pathlib import Path

from conftest import MockEngine

from plantops.__main__ import _build_parser
from plantops.config import EngineConfig, PlantOpsConfig
from plantops.connectors.cli import CLIConnector
from plantops.core import PlantOps
from plantops.models import Plant
from plantops.store import MemoryBlobStore


@pytest.fixture
def hub() -> PlantOps:
    h = PlantOps(PlantOpsConfig(engine=EngineConfig(name="mock")), blobs=MemoryBlobStore())
    h.add_engine(MockEngine())
    h.store.upsert(Plant(id="1", name="Fern", species="Nephrolepis"))
    return h


class TestCLIConnector:
    def test_focus_command(self, hub: PlantOps, capsys):
        CLIConnector(hub)._handle_command("/focus fern")
        assert "[focused on Fern]" in capsys.readouterr().out
        assert hub.chat.session.focus_id == "1"

    def test_focus_unknown_plant(self, hub: PlantOps, capsys):
        CLIConnector(hub)._handle_command("/focus Orchid")
        assert "No plant named 'Orchid'" in capsys.readouterr().out
        assert hub.chat.session is None

    def test_garden_command(self, hub: PlantOps):
        connector = CLIConnector(hub)
        connector._handle_command("/focus Fern")
        connector._handle_command("/garden")
        assert hub.chat.session.focus_id is None

    def test_plants_command(self, hub: PlantOps, capsys):
        CLIConnector(hub)._handle_command("/plants")
        assert "Fern (Nephrolepis) health=-" in capsys.readouterr().out

    def test_unknown_command_shows_help(self, hub: PlantOps, capsys):
        CLIConnector(hub)._handle_command("/what")
        assert "/focus NAME" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_reply_streams_to_stdout(self, hub: PlantOps, capsys):
        await CLIConnector(hub).reply("hello")
        assert "PlantOps: Hello there" in capsys.readouterr().out


class TestArgParser:
    def test_observe(self):
        args = _build_parser().parse_args(["observe", "Fern", "leaf.jpg", "--notes", "dry tips"])
        assert args.command == "observe"
        assert args.image == Path("leaf.jpg")
        assert args.notes == "dry tips"

    def test_default_is_chat(self):
        assert _build_parser().parse_args([]).command is None

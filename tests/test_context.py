"""Tests for analysis and chat context assembly."""

from __future__ import annotations

from dataclasses import replace

from conftest import make_entry

from plantops.context import ContextAssembler, format_date
from plantops.models import Plant


def plant_with_entries(count: int) -> Plant:
    base = 1700000000000
    return Plant(
        id="p1",
        name="Monstera",
        species="Monstera deliciosa",
        location="Living room",
        sun_exposure="Bright indirect",
        watering_frequency="Weekly",
        thought_signature="aerial roots healthy",
        entries=[make_entry(i % 101, base + i * 86_400_000, f"day {i}") for i in range(count)],
    )


class TestAnalysisContext:
    def test_window_caps_at_three(self):
        plant = plant_with_entries(100)
        ctx = ContextAssembler().build_analysis_context(plant, plant.entries)
        assert len(ctx.history) == 3
        assert [f.notes for f in ctx.history] == ["day 97", "day 98", "day 99"]

    def test_fewer_than_window(self):
        plant = plant_with_entries(2)
        ctx = ContextAssembler().build_analysis_context(plant, plant.entries)
        assert [f.notes for f in ctx.history] == ["day 0", "day 1"]

    def test_orders_oldest_to_newest(self):
        plant = plant_with_entries(5)
        shuffled = [plant.entries[i] for i in (4, 0, 3, 1, 2)]
        ctx = ContextAssembler().build_analysis_context(plant, shuffled)
        assert [f.notes for f in ctx.history] == ["day 2", "day 3", "day 4"]

    def test_carries_plant_settings_and_signature(self):
        plant = plant_with_entries(1)
        rendered = ContextAssembler().build_analysis_context(plant, plant.entries).render()
        assert "Plant: Monstera deliciosa" in rendered
        assert "Living room, Sun: Bright indirect, Watering: Weekly" in rendered
        assert 'Memory: "aerial roots healthy"' in rendered
        assert f"Date: {format_date(plant.entries[0].timestamp)}, Health: 0, Notes: day 0" in rendered

    def test_empty_signature_is_fresh_start(self):
        plant = replace(plant_with_entries(0), thought_signature="")
        rendered = ContextAssembler().build_analysis_context(plant, []).render()
        assert 'Memory: "Fresh start."' in rendered
        assert "Recent history" not in rendered

    def test_configurable_window(self):
        plant = plant_with_entries(10)
        ctx = ContextAssembler(history_window=5).build_analysis_context(plant, plant.entries)
        assert len(ctx.history) == 5

    def test_deterministic(self):
        plant = plant_with_entries(7)
        a = ContextAssembler().build_analysis_context(plant, plant.entries).render()
        b = ContextAssembler().build_analysis_context(plant, list(reversed(plant.entries))).render()
        assert a == b


class TestChatContext:
    def test_garden_summary_lines(self, fern: Plant):
        empty = Plant(id="p2", name="Cactus", species="Cereus", location="Window")
        ctx = ContextAssembler().build_chat_context(None, [fern, empty])
        rendered = ctx.render()
        assert "- Fern (Nephrolepis exaltata): Located in Bathroom, Health Score: 60" in rendered
        assert "- Cactus (Cereus): Located in Window, Health Score: unavailable" in rendered
        assert "Currently focused on" not in rendered
        assert ctx.focus_id is None

    def test_plants_keep_store_order(self, fern: Plant):
        other = Plant(id="p2", name="Aloe")
        rendered = ContextAssembler().build_chat_context(None, [fern, other]).render()
        assert rendered.index("Fern") < rendered.index("Aloe")

    def test_focus_includes_full_history(self):
        plant = plant_with_entries(20)
        ctx = ContextAssembler().build_chat_context(plant, [plant])
        assert len(ctx.focus_history) == 20
        rendered = ctx.render()
        assert "Currently focused on: Monstera (Monstera deliciosa)" in rendered
        assert "day 0" in rendered and "day 19" in rendered

    def test_focus_history_is_chronological(self):
        plant = plant_with_entries(4)
        shuffled = replace(plant, entries=list(reversed(plant.entries)))
        ctx = ContextAssembler().build_chat_context(shuffled, [shuffled])
        assert [f.notes for f in ctx.focus_history] == ["day 0", "day 1", "day 2", "day 3"]

    def test_empty_garden(self):
        rendered = ContextAssembler().build_chat_context(None, []).render()
        assert "(no plants yet)" in rendered

    def test_deterministic(self, fern: Plant):
        assembler = ContextAssembler()
        assert (
            assembler.build_chat_context(fern, [fern]).render()
            == assembler.build_chat_context(fern, [fern]).render()
        )


class TestFormatDate:
    def test_utc_iso_date(self):
        assert format_date(0) == "1970-01-01"
        assert format_date(1700000000000) == "2023-11-14"

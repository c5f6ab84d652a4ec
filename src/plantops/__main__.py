"""Entry point: python -m plantops [command]

- No args / "chat": Interactive garden chat REPL
- plants / add / observe / scan / tip / speak / delete: one-shot commands
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import wave
from pathlib import Path

from plantops.config import PlantOpsConfig, load_config
from plantops.errors import PlantOpsError


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="plantops", description="PlantOps plant health tracker")
    parser.add_argument("--config", type=Path, help="Path to plantops.toml")
    sub = parser.add_subparsers(dest="command")

    chat = sub.add_parser("chat", help="Interactive garden chat (default)")
    chat.add_argument("--plant", help="Focus the chat on one plant (name or id)")

    sub.add_parser("plants", help="List plants")

    add = sub.add_parser("add", help="Add a plant")
    add.add_argument("--name", required=True)
    add.add_argument("--species", default="")
    add.add_argument("--location", default="")
    add.add_argument("--sun", default="", help="Sun exposure")
    add.add_argument("--water", default="", help="Watering frequency")
    add.add_argument("--soil", default="", help="Soil type")
    add.add_argument("--identify", type=Path, help="Photo used to suggest species and settings")

    observe = sub.add_parser("observe", help="Analyze a new photo of a plant")
    observe.add_argument("plant", help="Plant name or id")
    observe.add_argument("image", type=Path)
    observe.add_argument("--notes", default="")
    observe.add_argument("--audio", type=Path, help="Spoken notes to transcribe")

    scan = sub.add_parser("scan", help="Quick audit of a photo (not stored)")
    scan.add_argument("image", type=Path)

    tip = sub.add_parser("tip", help="One short care tip for a species")
    tip.add_argument("species")

    speak = sub.add_parser("speak", help="Read text aloud into a WAV file (Gemini only)")
    speak.add_argument("text")
    speak.add_argument("--out", type=Path, default=Path("plantops-reply.wav"))

    delete = sub.add_parser("delete", help="Delete a plant and its history")
    delete.add_argument("plant", help="Plant name or id")

    return parser


async def _run_add(hub, args: argparse.Namespace) -> None:
    from plantops.media import MediaInput

    attrs = {
        "species": args.species,
        "location": args.location,
        "sun_exposure": args.sun,
        "watering_frequency": args.water,
        "soil_type": args.soil,
    }
    if args.identify:
        ident = await hub.analysis.identify(MediaInput.from_path(args.identify))
        print(f"Identified: {ident.species} — {ident.care_tip}")
        attrs["species"] = attrs["species"] or ident.species
        attrs["sun_exposure"] = attrs["sun_exposure"] or ident.sun_exposure
        attrs["watering_frequency"] = attrs["watering_frequency"] or ident.watering_frequency
        attrs["soil_type"] = attrs["soil_type"] or ident.soil_type
    plant = hub.add_plant(args.name, **attrs)
    print(f"Added {plant.name} (id={plant.id})")


async def _run_observe(hub, args: argparse.Namespace) -> None:
    from plantops.media import DEFAULT_AUDIO_MIME, MediaInput

    plant = hub.store.find(args.plant)
    notes = args.notes
    if args.audio:
        spoken = await hub.analysis.transcribe(
            MediaInput.from_path(args.audio, default_mime=DEFAULT_AUDIO_MIME)
        )
        notes = f"{notes} {spoken}".strip()
        print(f"Transcribed notes: {spoken}")

    entry = await hub.submit_observation(plant.id, MediaInput.from_path(args.image), notes)
    result = entry.analysis
    print(f"{plant.name}: health {entry.health_score}/100")
    print(f"\nObservation:  {result.observation}")
    print(f"Hypothesis:   {result.hypothesis}")
    print(f"Plan:         {result.plan}")
    print(f"Verification: {result.verification}")
    print(f"Comparison:   {result.comparative_analysis}")
    print(f"\nSummary: {result.summary}")
    for tip in result.optimization_tips:
        print(f"  - {tip}")
    for source in result.sources:
        print(f"  [{source.title}] {source.uri}")


async def _run_scan(hub, args: argparse.Namespace) -> None:
    from plantops.media import MediaInput

    result = await hub.analysis.quick_audit(MediaInput.from_path(args.image))
    print(f"{result.species} ({result.confidence_score:.0%} confidence)")
    print(f"Health:     {result.health_status}")
    print(f"Urgent:     {result.urgent_care}")
    print(f"Long term:  {result.long_term_advice}")
    print(f"Insight:    {result.scientific_insight}")
    for source in result.sources:
        print(f"  [{source.title}] {source.uri}")


async def _run_speak(hub, args: argparse.Namespace) -> None:
    engine = hub._get_engine()
    synthesize = getattr(engine, "synthesize_speech", None)
    if synthesize is None:
        raise PlantOpsError(f"Engine '{engine.name}' has no speech synthesis")
    pcm = await synthesize(args.text)
    if not pcm:
        raise PlantOpsError("No audio returned")
    with wave.open(str(args.out), "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(24000)
        wav.writeframes(pcm)
    print(f"Wrote {args.out}")


async def _dispatch(args: argparse.Namespace, config: PlantOpsConfig) -> None:
    from plantops.connectors.cli import CLIConnector
    from plantops.core import PlantOps

    cmd = args.command or "chat"
    # Listing and deleting never talk to an engine.
    hub = PlantOps(config) if cmd in ("plants", "delete") else PlantOps.from_config(config)

    if cmd == "chat":
        await CLIConnector(hub).start(focus=getattr(args, "plant", None))
    elif cmd == "plants":
        for plant in hub.store.list():
            latest = plant.latest_entry
            score = f"{latest.health_score}/100" if latest else "no observations"
            print(f"{plant.id}  {plant.name} ({plant.species or '?'}) — {score}")
    elif cmd == "add":
        await _run_add(hub, args)
    elif cmd == "observe":
        await _run_observe(hub, args)
    elif cmd == "scan":
        await _run_scan(hub, args)
    elif cmd == "tip":
        print(await hub.analysis.care_tip(args.species))
    elif cmd == "speak":
        await _run_speak(hub, args)
    elif cmd == "delete":
        plant = hub.store.find(args.plant)
        hub.delete_plant(plant.id)
        print(f"Deleted {plant.name}")


def main() -> None:
    args = _build_parser().parse_args()
    config = load_config(args.config)
    _setup_logging(config.log_level)

    try:
        asyncio.run(_dispatch(args, config))
    except KeyboardInterrupt:
        pass
    except (PlantOpsError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

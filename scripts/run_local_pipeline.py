from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from sceneflow.config import Settings
from sceneflow.exceptions import SceneFlowError
from sceneflow.models.serializers import deserialize_transcript_segments, serialize_scenes
from sceneflow.pipeline import create_scene_pipeline
from sceneflow.utils.logging_setup import setup_logging


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the SceneFlow pipeline on a transcript JSON file.")
    parser.add_argument("--transcript", required=True, help="Path to [{text, startMs, endMs, confidence}] JSON")
    parser.add_argument("--out", default=None, help="Output path for the scene JSON (defaults to stdout)")
    parser.add_argument("--enrich", action="store_true", help="Enable LLM enrichment (uses ENRICHMENT_* env)")
    parser.add_argument("--max-iterations", type=int, default=None, help="Layout iteration budget")
    parser.add_argument("--scene-workers", type=int, default=None, help="Parallel scene workers")
    parser.add_argument("--no-cache", action="store_true", help="Disable the per-job scene cache")
    return parser.parse_args()


async def _run() -> int:
    args = _parse_args()
    transcript_path = Path(args.transcript)
    if not transcript_path.exists():
        raise SystemExit(f"Transcript not found: {transcript_path}")

    settings = Settings()
    if args.enrich:
        settings.enrichment.enabled = True
    if args.max_iterations is not None:
        settings.layout.max_iterations = int(args.max_iterations)
    if args.scene_workers is not None:
        settings.concurrency.scene_workers = int(args.scene_workers)
    if args.no_cache:
        settings.cache.enabled = False
    setup_logging(settings)

    try:
        transcript = deserialize_transcript_segments(json.loads(transcript_path.read_text(encoding="utf-8")))
        orchestrator = create_scene_pipeline(settings)
    except (SceneFlowError, json.JSONDecodeError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    try:
        result = await orchestrator.run(transcript)
    except SceneFlowError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    finally:
        await orchestrator.close()

    payload = json.dumps({"scenes": serialize_scenes(result.scenes)}, ensure_ascii=False, indent=2)
    if args.out:
        Path(args.out).write_text(payload + "\n", encoding="utf-8")
    else:
        print(payload)

    if result.failure is not None:
        f = result.failure
        print(
            f"failed scene_index={f.scene_index} stage={f.stage.value} "
            f"last_completed={f.last_completed_stage.value if f.last_completed_stage else None} "
            f"error_code={f.error_code}: {f.message}",
            file=sys.stderr,
        )
        return 1
    print(f"scenes={len(result.scenes)}/{result.total_scenes} cancelled={result.cancelled}", file=sys.stderr)
    return 0


def main() -> None:
    raise SystemExit(asyncio.run(_run()))


if __name__ == "__main__":
    main()

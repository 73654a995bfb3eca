"""Batch CLI entry point for the document normalizer."""
from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import argparse
import asyncio
import csv
import logging

from .config import AppConfig, load_config
from .errors import NormalizationError
from .normalization import DocumentNormalizer
from .normalization.raster import content_type_for
from .normalization.services import run_denoise, run_enhance, run_perspective, run_rotate

LOGGER = logging.getLogger(__name__)

SUMMARY_FIELDS = [
    "file_name",
    "output_name",
    "status",
    "steps",
    "warnings",
    "width",
    "height",
    "elapsed_seconds",
    "error",
]


def _iter_documents(input_path: Path) -> Iterable[Path]:
    if input_path.is_file():
        yield input_path
        return
    if not input_path.exists():
        raise FileNotFoundError(f"Input path not found: {input_path}")
    for path in sorted(p for p in input_path.rglob("*") if p.is_file()):
        if content_type_for(path) is None:
            LOGGER.debug("Skipping unsupported file %s", path)
            continue
        yield path


async def _process_document(
    normalizer: DocumentNormalizer,
    config: AppConfig,
    document: Path,
    semaphore: asyncio.Semaphore,
) -> Dict[str, str]:
    row = dict.fromkeys(SUMMARY_FIELDS, "")
    row["file_name"] = document.name
    async with semaphore:
        data = await asyncio.to_thread(document.read_bytes)
        try:
            result = await normalizer.process(
                data,
                content_type_for(document) or "",
                document.name,
                options=config.enhancement,
                progress=lambda label: LOGGER.debug("%s: %s", document.name, label),
            )
        except NormalizationError as exc:
            LOGGER.error("Failed to normalize %s: %s", document, exc)
            row.update({"status": "failed", "error": str(exc)})
            return row

    target = config.output.base_path / result.name
    await asyncio.to_thread(target.write_bytes, result.data)
    row.update(
        {
            "output_name": result.name,
            "status": "ok",
            "steps": ";".join(result.steps_applied),
            "warnings": ";".join(result.warnings),
            "width": str(result.width),
            "height": str(result.height),
            "elapsed_seconds": f"{result.elapsed_seconds:.2f}",
        }
    )
    return row


async def run_batch(config: AppConfig) -> List[Dict[str, str]]:
    config.output.base_path.mkdir(parents=True, exist_ok=True)
    normalizer = DocumentNormalizer(init_timeout=config.vision.init_timeout_seconds)
    semaphore = asyncio.Semaphore(config.runtime.max_concurrent_documents)
    documents = list(_iter_documents(config.input.path))
    LOGGER.info("Normalizing %d document(s) from %s", len(documents), config.input.path)
    rows = await asyncio.gather(
        *(_process_document(normalizer, config, document, semaphore) for document in documents)
    )
    return list(rows)


def run_pipeline(config: AppConfig) -> List[Dict[str, str]]:
    rows = asyncio.run(run_batch(config))
    _write_summary_csv(config.output.summary_csv, rows)
    return rows


def run_all_steps(image_path: Path, output_dir: Path) -> List[Dict[str, object]]:
    """Run each step independently on the same image, for inspection."""
    results = []
    for fn, params in [
        (run_rotate, {}),
        (run_perspective, {}),
        (run_denoise, {}),
        (run_enhance, {"intensity": "medium"}),
    ]:
        res = fn({"image_path": str(image_path), "params": params, "output_dir": str(output_dir)})
        LOGGER.info("%s -> %s", res["step"], res["output_path"])
        results.append(res)
    return results


def _write_summary_csv(path: Path, rows: List[Dict[str, str]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if not rows:
        LOGGER.warning("No documents processed; summary file will be empty")
        path.write_text("", encoding="utf-8")
        return

    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=SUMMARY_FIELDS)
        writer.writeheader()
        writer.writerows(rows)
    LOGGER.info("Summary CSV written to %s", path)


def _apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    if args.input:
        config.input.path = args.input
    if args.output:
        config.output.base_path = args.output
        config.output.summary_csv = args.output / "summary.csv"
    overrides = {}
    if args.intensity:
        overrides["intensity"] = args.intensity
    if args.no_perspective:
        overrides["auto_correct_perspective"] = False
    if args.no_rotate:
        overrides["auto_rotate"] = False
    if args.no_denoise:
        overrides["remove_noise"] = False
    if args.no_enhance:
        overrides["enhance_quality"] = False
    if overrides:
        config.enhancement = replace(config.enhancement, **overrides)
    return config


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Photographed-document normalizer")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Normalize every image under the input path")
    run.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config.yaml")
    run.add_argument("--input", type=Path, help="Override input file or directory")
    run.add_argument("--output", type=Path, help="Override output directory")
    run.add_argument("--intensity", choices=["low", "medium", "high"], help="Enhancement strength")
    run.add_argument("--no-perspective", action="store_true", help="Skip perspective correction")
    run.add_argument("--no-rotate", action="store_true", help="Skip auto-rotation")
    run.add_argument("--no-denoise", action="store_true", help="Skip noise removal")
    run.add_argument("--no-enhance", action="store_true", help="Skip quality enhancement")

    steps = commands.add_parser("steps", help="Run every step independently on one image")
    steps.add_argument("--image", type=Path, required=True, help="Path to input image")
    steps.add_argument("--output", type=Path, default=Path("output/steps"), help="Output directory")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    if args.command == "steps":
        run_all_steps(args.image, args.output)
        return 0

    LOGGER.info("Loading config from %s", args.config)
    config = _apply_overrides(load_config(args.config), args)
    rows = run_pipeline(config)
    failed = sum(1 for row in rows if row["status"] != "ok")
    return 1 if failed else 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

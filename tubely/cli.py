from __future__ import annotations

import argparse
import logging
import subprocess
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console

from .core.config import get_settings
from .core.errors import RemuxError, SigningError
from .core.logging import configure_logging
from .core.storage import get_object_store
from .media.keys import build_object_key
from .media.probe import FFprobeInspector, classify_aspect
from .media.references import ReferenceMaterializer, StoredReference
from .media.remux import FFmpegRemuxer
from .media.toolchain import check_media_tools

console = Console()


def main(argv: Optional[list[str]] = None) -> None:
    """The main entry point for the CLI.

    Args:
        argv: The command-line arguments.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_cli_logging()

    if getattr(args, "check", False):
        _run_environment_check()
        return

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tubely ingest developer CLI")
    parser.add_argument("--check", action="store_true", help="Validate presence of ffmpeg/ffprobe dependencies")

    subparsers = parser.add_subparsers(dest="command")

    probe_parser = subparsers.add_parser("probe", help="Print stream geometry, orientation and a sample object key")
    probe_parser.add_argument("--file", required=True, help="Path to the source media file")
    probe_parser.set_defaults(func=_cmd_probe)

    remux_parser = subparsers.add_parser("remux", help="Rewrite an MP4 with its index moved to the front")
    remux_parser.add_argument("--file", required=True, help="Path to the source media file")
    remux_parser.add_argument("--out", required=True, help="Destination path for the fast-start copy")
    remux_parser.set_defaults(func=_cmd_remux)

    sign_parser = subparsers.add_parser("sign", help="Issue a signed retrieval URL for a stored object")
    sign_parser.add_argument("--bucket", default=None, help="Bucket name (defaults to the configured bucket)")
    sign_parser.add_argument("--key", required=True, help="Object key")
    sign_parser.set_defaults(func=_cmd_sign)
    return parser


def _cmd_probe(args: argparse.Namespace) -> None:
    settings = get_settings()
    media_path = _existing_file(args.file)
    inspector = FFprobeInspector(settings.ffprobe_path, timeout_s=settings.media_tool_timeout_s)
    try:
        geometry = inspector.inspect(media_path)
    except subprocess.CalledProcessError as exc:
        console.print(f"[red]ffprobe failed:[/] {(exc.stderr or '').strip()}")
        sys.exit(3)
    except (subprocess.SubprocessError, OSError, ValueError) as exc:
        console.print(f"[red]ffprobe failed:[/] {exc}")
        sys.exit(3)
    if geometry is None:
        console.print("[red]No stream with usable width/height found.[/]")
        sys.exit(3)

    orientation = classify_aspect(geometry.width, geometry.height, tolerance=settings.aspect_tolerance)
    console.print_json(
        data={
            "width": geometry.width,
            "height": geometry.height,
            "ratio": round(geometry.ratio, 4),
            "orientation": orientation.value,
            "sample_key": build_object_key(orientation),
        }
    )


def _cmd_remux(args: argparse.Namespace) -> None:
    settings = get_settings()
    media_path = _existing_file(args.file)
    target = Path(args.out).expanduser().resolve()
    remuxer = FFmpegRemuxer(settings.ffmpeg_path, timeout_s=settings.media_tool_timeout_s)
    try:
        remuxer.remux(media_path, target)
    except RemuxError as exc:
        console.print(f"[red]{exc}[/]")
        if exc.stderr:
            console.print(f"[dim]{exc.stderr}[/]")
        sys.exit(3)
    console.print(f"[green]Fast-start copy written to {target}[/]")


def _cmd_sign(args: argparse.Namespace) -> None:
    settings = get_settings()
    materializer = ReferenceMaterializer(get_object_store(settings), ttl_s=settings.presign_ttl_s)
    try:
        reference = StoredReference(bucket=args.bucket or settings.s3_bucket, key=args.key)
        url = materializer.materialize(reference)
    except SigningError as exc:
        console.print(f"[red]Signing failed:[/] {exc}")
        sys.exit(4)
    console.print(url, soft_wrap=True, markup=False, highlight=False)


def _configure_cli_logging() -> None:
    # stdout carries command output only; events go to stderr.
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    configure_logging(level=level, environment=settings.environment, stream=sys.stderr)


def _existing_file(raw: str) -> Path:
    media_path = Path(raw).expanduser().resolve()
    if not media_path.exists():
        console.print(f"[red]File not found: {media_path}[/]")
        sys.exit(2)
    return media_path


def _run_environment_check() -> None:
    """Check for the presence of required external dependencies."""
    settings = get_settings()
    results = check_media_tools(settings.ffmpeg_path, settings.ffprobe_path)

    console.rule("[bold]Environment Check")
    for label, ok in results.items():
        console.print(f"[bold]{label}[/]: {'✅' if ok else '❌'}")

    if not all(results.values()):
        console.print("[red]Missing dependencies detected.[/]")
        sys.exit(1)
    console.print("[green]Environment looks good![/]")


if __name__ == "__main__":
    main()

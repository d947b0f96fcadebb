"""Command line interface for r2manager."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from rich.logging import RichHandler

from . import __version__
from .cli_progress import (
    TransferProgressDisplay,
    UploadProgressDisplay,
    render_configuration_summary,
    render_listing,
)
from .errors import R2ManagerError
from .listing.filters import DATE_PRESETS, EXTENSION_GROUPS, SIZE_PRESETS, date_preset, size_preset
from .listing.view import FilterSpec, ItemType, SortDirection, SortField, SortSpec
from .manager import R2Manager
from .models import TransferDestination, TransferMode, join_key


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # keep httpx request lines out of --debug output
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _normalize_dest(dest: Optional[str]) -> Optional[str]:
    if dest is None:
        return None
    value = dest.strip()
    if value in {"", "/"}:
        return None
    return value.lstrip("/").rstrip("/")


def _strip_optional_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        return value[1:-1]
    return value


def _load_env_file(path: Path, override: bool = False) -> None:
    if not path.exists():
        raise CLIError(f"env file not found: {path}")
    if not path.is_file():
        raise CLIError(f"env path is not a file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue

        value = _strip_optional_quotes(value.strip())
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _collect_sources(sources: Sequence[Path], prefix: Optional[str]) -> List[Tuple[Path, Optional[str]]]:
    """
    Expand directories into their files.

    A file found at ``dir/a/b.txt`` is uploaded under ``prefix/dir/a``.
    """
    collected: List[Tuple[Path, Optional[str]]] = []
    for source in sources:
        source = Path(source).expanduser()
        if source.is_file():
            collected.append((source, prefix))
        elif source.is_dir():
            for path in sorted(p for p in source.rglob("*") if p.is_file()):
                relative_dir = path.parent.relative_to(source.parent).as_posix()
                collected.append((path, _normalize_dest(join_key(prefix, relative_dir))))
        else:
            raise CLIError(f"source does not exist: {source}")
    return collected


def _resolve_api(args: argparse.Namespace) -> Tuple[str, Optional[str]]:
    api_url = args.api_url or os.getenv("R2_API_URL")
    if not api_url:
        raise CLIError("R2_API_URL environment variable is not set (or pass --api-url)")
    return api_url, args.token or os.getenv("R2_API_TOKEN")


async def _run_upload(args: argparse.Namespace) -> int:
    api_url, token = _resolve_api(args)
    prefix = _normalize_dest(args.prefix)
    files = _collect_sources(args.sources, prefix)

    display = UploadProgressDisplay()
    results = []
    async with R2Manager(api_url, token) as r2:
        display.attach(r2.upload_events)
        try:
            for path, file_prefix in files:
                results.append(await r2.upload(path, args.bucket, file_prefix))
        finally:
            display.on_finish()

    failed = [r for r in results if not r.success]
    for result in failed:
        print(f"ERROR: {result.destination_key}: {result.error}", file=sys.stderr)
    return 1 if failed else 0


async def _run_ls(args: argparse.Namespace) -> int:
    api_url, token = _resolve_api(args)
    sort_spec = SortSpec(
        SortField(args.sort), SortDirection.DESC if args.desc else SortDirection.ASC
    )
    extensions = set(args.ext or ())
    for group in args.group or ():
        extensions.update(EXTENSION_GROUPS[group])
    size_min, size_max = size_preset(args.size)
    date_start, date_end = date_preset(args.date)
    filter_spec = FilterSpec(
        text=args.filter or "",
        extensions=frozenset(extensions),
        size_min=size_min,
        size_max=size_max,
        date_start=date_start,
        date_end=date_end,
        item_type=ItemType(args.type),
    )

    async with R2Manager(api_url, token) as r2:
        listing = await r2.list_all(args.bucket, args.path or "")
        render_listing(args.bucket, listing.path, r2.project(sort_spec, filter_spec))
    return 0


async def _run_transfer(args: argparse.Namespace) -> int:
    api_url, token = _resolve_api(args)
    if not args.keys and not args.folder:
        raise CLIError("nothing to transfer: give at least one KEY or --folder")

    mode = TransferMode.MOVE if args.command == "mv" else TransferMode.COPY
    destination = TransferDestination(args.to, _normalize_dest(args.path) or "")

    display = TransferProgressDisplay()
    async with R2Manager(api_url, token) as r2:
        display.attach(r2.transfer_events)
        result = await r2.transfer(mode, args.bucket, destination, args.keys, args.folder)

    print(f"{result.completed_count}/{result.total_count}")
    result.raise_for_error()
    return 0


async def _run_rm(args: argparse.Namespace) -> int:
    api_url, token = _resolve_api(args)
    async with R2Manager(api_url, token) as r2:
        deleted = await r2.delete(args.bucket, args.keys)
    print(f"{len(deleted)}/{len(args.keys)}")
    return 0


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--api-url", default=None, help="Worker API URL (default from R2_API_URL)")
    parser.add_argument("--token", default=None, help="Bearer token (default from R2_API_TOKEN)")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="r2m",
        description="Upload, list, move, copy and delete objects in R2 buckets.",
    )
    parser.add_argument("--version", action="version", version=f"r2m {__version__}")
    subparsers = parser.add_subparsers(dest="command")

    upload = subparsers.add_parser("upload", help="Upload files or folders")
    upload.add_argument("sources", nargs="+", type=Path, help="Files or folders to upload")
    upload.add_argument("-b", "--bucket", required=True, help="Target bucket")
    upload.add_argument("-p", "--prefix", default=None, help="Destination folder in the bucket")
    _add_common_arguments(upload)

    ls = subparsers.add_parser("ls", help="List a bucket folder")
    ls.add_argument("bucket", help="Bucket name")
    ls.add_argument("path", nargs="?", default="", help="Folder path inside the bucket")
    ls.add_argument("--sort", choices=[f.value for f in SortField], default=SortField.NAME.value)
    ls.add_argument("--desc", action="store_true", help="Sort descending")
    ls.add_argument("--filter", default=None, help="Only names containing this text")
    ls.add_argument("--ext", nargs="+", default=None, help="Only these extensions (.jpg .png ...)")
    ls.add_argument("--group", action="append", choices=sorted(EXTENSION_GROUPS), help="Extension group (repeatable)")
    ls.add_argument("--size", choices=list(SIZE_PRESETS), default="all", help="Size range preset")
    ls.add_argument("--date", choices=list(DATE_PRESETS), default="all", help="Upload date preset")
    ls.add_argument("--type", choices=[t.value for t in ItemType], default=ItemType.ALL.value)
    _add_common_arguments(ls)

    for name, verb in (("mv", "Move"), ("cp", "Copy")):
        transfer = subparsers.add_parser(name, help=f"{verb} files and folders to another bucket")
        transfer.add_argument("bucket", help="Source bucket")
        transfer.add_argument("keys", nargs="*", help="Object keys")
        transfer.add_argument("--folder", action="append", default=None, help="Folder path (repeatable)")
        transfer.add_argument("--to", required=True, help="Destination bucket")
        transfer.add_argument("--path", default=None, help="Destination folder path")
        _add_common_arguments(transfer)

    rm = subparsers.add_parser("rm", help="Delete files from a bucket")
    rm.add_argument("bucket", help="Bucket name")
    rm.add_argument("keys", nargs="+", help="Object keys")
    _add_common_arguments(rm)

    return parser


_COMMANDS = {
    "upload": _run_upload,
    "ls": _run_ls,
    "mv": _run_transfer,
    "cp": _run_transfer,
    "rm": _run_rm,
}


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level or os.getenv("LOG_LEVEL"),
    )

    if args.command == "upload" and not args.silent:
        render_configuration_summary(
            {
                "Sources": ", ".join(str(s) for s in args.sources),
                "Bucket": args.bucket,
                "Prefix": _normalize_dest(args.prefix) or "(root)",
                "API": args.api_url or os.getenv("R2_API_URL") or "(missing)",
                "Env File": str(used_env_file) if used_env_file else "-",
                "Logging": effective_log_mode,
            }
        )

    try:
        return asyncio.run(_COMMANDS[args.command](args))
    except (CLIError, R2ManagerError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()

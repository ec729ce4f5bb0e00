"""Command-line entry point for replaying or tailing a relay message stream.

Messages are read as JSON Lines (one ``{"key": ..., "data": ...}`` object per
line) from a file or stdin, applied to a :class:`DashboardCore`, and a
per-channel summary of the buffered window is printed at the end. All
launches, whether through ``python main.py`` or the ``livedash`` console
script, flow through ``main()`` here.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

from .config import load_config
from .core import Device
from .dashboard import DashboardCore
from .remote.message_reader import reader_loop

logger = logging.getLogger(__name__)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="LiveDash relay stream consumer")
    parser.add_argument(
        "--config",
        type=Path,
        help="Optional YAML file describing DashboardConfig overrides",
    )
    parser.add_argument(
        "--input",
        default="-",
        help="JSON Lines file with relay messages (default: stdin)",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--device",
        help="Select this device id as soon as it is announced",
    )
    group.add_argument(
        "--auto-select",
        action="store_true",
        help="Select the first announced device",
    )
    parser.add_argument(
        "--channel",
        help="Channel id to report as the selected channel",
    )
    parser.add_argument(
        "--window",
        type=float,
        help="Override window_seconds without editing the YAML",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Logging verbosity (default: INFO)",
    )
    return parser


def build_core(args: argparse.Namespace) -> DashboardCore:
    cfg = load_config(args.config)
    if args.window is not None:
        cfg.window_seconds = float(args.window)
    core = DashboardCore(cfg.sanitized())

    wanted = args.device

    def _on_device(device: Device) -> None:
        print(f"{device.name} connected")
        if core.selected_device is not None:
            return
        if args.auto_select or (wanted is not None and device.id == wanted):
            core.select_device(device.id)

    def _on_channel(channel_id: str, label: str) -> None:
        print(f"new channel: {label} ({channel_id})")

    core.add_device_listener(_on_device)
    core.add_channel_listener(_on_channel)
    if args.channel:
        core.select_channel(args.channel)
    return core


def print_summary(core: DashboardCore, out: TextIO = sys.stdout) -> None:
    selected = core.selected_device
    print(f"selected device: {selected.id if selected else '-'}", file=out)
    print(f"clock offset: {core.offset_ms} ms", file=out)
    for channel_id, label in core.list_channel_options():
        samples = core.query(channel_id)
        marker = "*" if channel_id == core.selected_channel_id else " "
        latest = core.latest_timestamp(channel_id)
        latest_text = "-" if latest is None else str(latest)
        print(f"{marker} {label:<32} {len(samples):>6} samples  latest={latest_text}", file=out)


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    core = build_core(args)
    if args.input == "-":
        count = reader_loop(sys.stdin, core)
    else:
        path = Path(args.input).expanduser()
        if not path.exists():
            logger.error("Input file not found: %s", path)
            return 1
        with path.open("r", encoding="utf-8") as fh:
            count = reader_loop(fh, core)

    logger.info("Dispatched %d messages", count)
    print_summary(core)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

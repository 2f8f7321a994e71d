#!/usr/bin/env python3
"""Watch the IIoT dashboard from a terminal.

Signs in (when credentials are configured and no stored session exists),
loads the dashboard snapshots, connects the realtime channel and prints
every stream update until interrupted or ``--duration`` elapses.

Usage
-----
Set environment variables and run::

    export IIOT_EMAIL="you@example.com"
    export IIOT_PASSWORD="your-password"
    python scripts/watch_dashboard.py

Options::

    --duration SECONDS   Stop after this many seconds (default: run forever)
    --join DEVICE_ID     Join a device room (repeatable)
    --transport NAME     socketio (default) or mqtt
    --json               Print one JSON object per update
    --verbose            Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyiiot import (  # noqa: E402
    ChannelMessage,
    DeviceStatusMessage,
    IiotClient,
    IiotConfig,
    IiotError,
    SensorDataMessage,
    SystemMetricsMessage,
)
from pyiiot.bootstrap import BootstrapController  # noqa: E402


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _print_summary(controller: BootstrapController) -> None:
    reconciler = controller.reconciler
    metrics = reconciler.metrics()
    out: list[str] = [_section("DASHBOARD")]
    out.append(f"  devices   : {metrics.online_devices}/{metrics.total_devices} online")
    out.append(f"  alerts    : {metrics.alerts_count} active")
    out.append(f"  readings  : {metrics.data_points_today} today, {len(reconciler.sensor_readings())} buffered")
    counts = reconciler.device_status_counts()
    out.append("  status    : " + ", ".join(f"{state.value}={count}" for state, count in counts.items()))
    for device_id, device in sorted(reconciler.devices().items()):
        out.append(f"    {device_id:<16} {device.status.value:<8} {device.name}")
    if controller.banner:
        out.append(f"\n  !! {controller.banner}")
        for key, exc in controller.load_errors.items():
            out.append(f"     {key}: {exc}")
    print("\n".join(out))


def _format_message(message: ChannelMessage, json_mode: bool) -> str:
    if json_mode:
        record: dict[str, Any] = {"event": message.event.value, "payload": message.payload.model_dump(mode="json")}
        return json.dumps(record, ensure_ascii=False)
    match message:
        case SensorDataMessage(payload=reading):
            return (
                f"[sensor] {reading.device_id} {reading.sensor_type}="
                f"{reading.value:g}{reading.unit} at {reading.timestamp.isoformat()}"
            )
        case DeviceStatusMessage(payload=device):
            return f"[device] {device.device_id} -> {device.status.value}"
        case SystemMetricsMessage(payload=metrics):
            return f"[metrics] {metrics.online_devices}/{metrics.total_devices} online, {metrics.alerts_count} alerts"
    return repr(message)


async def main() -> int:
    parser = argparse.ArgumentParser(
        description="Print live IIoT dashboard updates.",
    )
    parser.add_argument("--duration", type=float, help="Stop after this many seconds")
    parser.add_argument("--join", action="append", default=[], metavar="DEVICE_ID", help="Join a device room")
    parser.add_argument("--transport", choices=["socketio", "mqtt"], help="Realtime channel transport")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    overrides: dict[str, Any] = {}
    if args.transport:
        overrides["channel_transport"] = args.transport
    config = IiotConfig.from_env(**overrides)

    ended = asyncio.Event()

    async with IiotClient(config) as client:
        client.on_session_ended(ended.set)
        if not client.session.is_authenticated and config.email and config.password:
            await client.login()

        client.channel.subscribe(lambda message: print(_format_message(message, args.json_mode), flush=True))
        controller = await client.start_dashboard()
        if not args.json_mode:
            _print_summary(controller)

        for device_id in args.join:
            await client.channel.join_device(device_id)

        try:
            await asyncio.wait_for(ended.wait(), timeout=args.duration)
            print("Session ended; sign in again.", file=sys.stderr)
            return 1
        except TimeoutError:
            return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)
    except IiotError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)

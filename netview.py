#!/usr/bin/env python3
"""
NetView - console front end for the scan/monitor core.
Runs one scan against the simulated backend, optionally monitors the
discovered hosts for a while, and prints the results and scan history.
"""
import argparse
import sys
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

from app.controller import SessionState
from app.dependencies import create_controller, create_dependencies
from app.events import EventType
from app.monitoring import MonitoringLifecycleManager
from config import STORAGE, get_logger, setup_logging
from config.exceptions import BackendCommandError, NetViewError, RangeValidationError
from discovery.hosts import HostRecord, LivenessStatus
from discovery.local_network import suggest_local_range
from discovery.simulated import SimulatedBackend

logger = get_logger(__name__)

SCAN_TIMEOUT_SECONDS = 60.0


def handle_options(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line options."""
    parser = argparse.ArgumentParser(
        prog="netview",
        description="Scan an IPv4 range and optionally monitor the hosts found.",
    )
    parser.add_argument(
        "start",
        nargs="?",
        default="192.168.1",
        help="Start address; missing octets are filled with 0 (default: 192.168.1)",
    )
    parser.add_argument(
        "end",
        nargs="?",
        default="",
        help="End address; auto-completed from the start address when empty",
    )
    parser.add_argument(
        "--local",
        action="store_true",
        help="Scan the /24 of the first active local interface instead",
    )
    parser.add_argument(
        "-m",
        "--monitor",
        type=float,
        default=0.0,
        metavar="SECONDS",
        help="Monitor the discovered hosts for this many seconds after the scan",
    )
    parser.add_argument(
        "-f",
        "--filter",
        default="",
        help="Only show hosts whose IP, hostname or MAC contains this text",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path.home() / STORAGE.DATA_DIR_NAME,
        help="Directory for settings, scan history and logs",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Verbose logging to the console",
    )
    return parser.parse_args(argv)


def format_host(host: HostRecord) -> str:
    ports = ", ".join(str(p) for p in host.open_ports) or "-"
    device = host.device_type.value if host.device_type else "-"
    return (
        f"{str(host.ip_address):<16} {host.display_name:<24} {host.mac_address or '-':<18} "
        f"{device:<16} {host.status.value:<8} {ports}"
    )


def print_hosts(hosts: List[HostRecord], counts: Dict[LivenessStatus, int]) -> None:
    print(f"{'IP':<16} {'NAME':<24} {'MAC':<18} {'TYPE':<16} {'STATUS':<8} PORTS")
    for host in hosts:
        print(format_host(host))
    summary = ", ".join(f"{counts[status]} {status.value}" for status in LivenessStatus)
    print(f"{len(hosts)} host(s) shown; all hosts: {summary}")


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the console application."""
    args = handle_options(argv)

    setup_logging(data_dir=args.data_dir, debug=args.debug, console_output=args.debug)
    logger.info("NetView starting...")

    deps = create_dependencies(data_dir=args.data_dir)
    controller = create_controller(deps)
    controller.attach()
    manager = MonitoringLifecycleManager(controller, deps.backend)

    scan_finished = threading.Event()

    def on_state_changed(event):
        if event.data.get("state") is SessionState.IDLE:
            scan_finished.set()

    def on_warning(event):
        print(f"warning: {event.data.get('message')}", file=sys.stderr)

    subscriptions = [
        deps.event_bus.subscribe(EventType.SESSION_STATE_CHANGED, on_state_changed),
        deps.event_bus.subscribe(EventType.SCAN_WARNING, on_warning),
        deps.event_bus.subscribe(EventType.DESYNC_WARNING, on_warning),
    ]

    try:
        manager.resync()

        if args.local:
            ip_range = suggest_local_range()
            if ip_range is None:
                print("No active local IPv4 interface found.", file=sys.stderr)
                return 1
            controller.request_scan_range(ip_range)
        else:
            ip_range = controller.request_scan(args.start, args.end)

        print(f"Scanning {ip_range} ...")
        if not scan_finished.wait(SCAN_TIMEOUT_SECONDS):
            print("Scan did not finish in time.", file=sys.stderr)
            return 1
        deps.event_bus.wait_until_idle()
        print_hosts(controller.filter_hosts(args.filter), controller.store.status_counts())

        if args.monitor > 0 and controller.hosts:
            manager.start()
            print(f"Monitoring {len(controller.hosts)} host(s) for {args.monitor:.0f}s ...")
            time.sleep(args.monitor)
            deps.event_bus.wait_until_idle()
            print_hosts(controller.filter_hosts(args.filter), controller.store.status_counts())
            manager.stop()

        print()
        print("Recent scans:")
        for entry in controller.get_scan_history():
            print(f"  {entry.timestamp:%Y-%m-%d %H:%M:%S}  {entry.ip_range}")
        return 0

    except RangeValidationError as e:
        print(f"Invalid range: {e.message}", file=sys.stderr)
        return 2
    except BackendCommandError as e:
        print(f"Backend rejected command: {e.message}", file=sys.stderr)
        return 1
    except NetViewError as e:
        logger.error(f"NetView error: {e}")
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    finally:
        for subscription in subscriptions:
            subscription.unsubscribe()
        controller.detach()
        if isinstance(deps.backend, SimulatedBackend):
            deps.backend.shutdown()
        deps.event_bus.shutdown()
        logger.info("NetView stopped")


if __name__ == "__main__":
    sys.exit(main())

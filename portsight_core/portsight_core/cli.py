#!/usr/bin/env python3
"""
portsight command line.

Every command prints JSON on stdout; logs go to stderr.
"""

from __future__ import annotations
import argparse
import json
import sys
import time
from typing import List, Optional

from .config import load_settings
from .context import AppContext
from .errors import TargetNotFound
from .obs.logging import configure_logging, get_logger
from .ports.resolver import validate_range
from .system.stats import DEFAULT_SAMPLE_INTERVAL, get_system_stats


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def cmd_services(ctx: AppContext, args) -> int:
    _print_json([s.to_dict() for s in ctx.aggregator.discover_all()])
    return 0


def cmd_show(ctx: AppContext, args) -> int:
    try:
        service = ctx.aggregator.require_service(args.id)
    except TargetNotFound as e:
        print(str(e), file=sys.stderr)
        return 1
    _print_json(service.to_dict())
    return 0


def cmd_ports(ctx: AppContext, args) -> int:
    _print_json([p.to_dict() for p in ctx.resolver.get_port_usage()])
    return 0


def cmd_free_ports(ctx: AppContext, args) -> int:
    try:
        free = ctx.resolver.find_free_ports(args.start, args.end, args.count)
    except ValueError as e:
        print(f"Invalid range: {e}", file=sys.stderr)
        return 2
    _print_json(free)
    return 0


def cmd_scan(ctx: AppContext, args) -> int:
    scanner = ctx.port_scanner
    if args.common:
        records = scanner.scan_common_ports(args.host)
    else:
        try:
            validate_range(args.start, args.end)
        except ValueError as e:
            print(f"Invalid range: {e}", file=sys.stderr)
            return 2
        records = scanner.scan_range(args.host, args.start, args.end)
    _print_json([r.to_dict() for r in records])
    return 0


def cmd_security(ctx: AppContext, args) -> int:
    _print_json(ctx.security_scanner.scan_current().to_dict())
    return 0


def cmd_stats(ctx: AppContext, args) -> int:
    _print_json(get_system_stats(args.sample).to_dict())
    return 0


def cmd_monitor(ctx: AppContext, args) -> int:
    def sink(event) -> None:
        print(json.dumps(event.to_dict(), ensure_ascii=False), flush=True)

    if args.interval is not None:
        ctx.monitor_config.set_interval(args.interval)
    monitor = ctx.create_monitor(sink=sink)

    if args.ticks is not None:
        # Bounded run in the foreground
        for i in range(args.ticks):
            if i:
                time.sleep(ctx.monitor_config.get().interval_seconds)
            monitor.tick()
        return 0

    monitor.start()
    try:
        while monitor.running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        pass
    finally:
        monitor.stop()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='portsight', description='Host service and port inspector')
    parser.add_argument('--config', help='Path to portsight.yml')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    parser.add_argument('--json-logs', action='store_true', default=None, help='Log as JSON lines')
    sub = parser.add_subparsers(dest='command', required=True)

    p_services = sub.add_parser('services', help='List discovered services')
    p_services.set_defaults(func=cmd_services)

    p_show = sub.add_parser('show', help='Show one service by id')
    p_show.add_argument('id', help='Service id, e.g. nginx.service or process-1234')
    p_show.set_defaults(func=cmd_show)

    p_ports = sub.add_parser('ports', help='List occupied ports with owning process')
    p_ports.set_defaults(func=cmd_ports)

    p_free = sub.add_parser('free-ports', help='Find unused ports in a range')
    p_free.add_argument('--start', type=int, default=1024, help='First port (default 1024)')
    p_free.add_argument('--end', type=int, default=65535, help='Last port (default 65535)')
    p_free.add_argument('--count', type=int, default=10, help='How many ports (default 10)')
    p_free.set_defaults(func=cmd_free_ports)

    p_scan = sub.add_parser('scan', help='Probe TCP ports on a host')
    p_scan.add_argument('--host', default='127.0.0.1', help='Target host (default 127.0.0.1)')
    p_scan.add_argument('--start', type=int, default=1, help='First port (default 1)')
    p_scan.add_argument('--end', type=int, default=1024, help='Last port (default 1024)')
    p_scan.add_argument('--common', action='store_true', help='Probe well-known service ports only')
    p_scan.set_defaults(func=cmd_scan)

    p_sec = sub.add_parser('security', help='Run the security checks')
    p_sec.set_defaults(func=cmd_security)

    p_stats = sub.add_parser('stats', help='Show host CPU and memory usage')
    p_stats.add_argument('--sample', type=float, default=DEFAULT_SAMPLE_INTERVAL,
                         help=f'Seconds to sample CPU usage over (default {DEFAULT_SAMPLE_INTERVAL})')
    p_stats.set_defaults(func=cmd_stats)

    p_mon = sub.add_parser('monitor', help='Print service change events as JSON lines')
    p_mon.add_argument('--interval', type=float, help='Seconds between checks (default from config)')
    p_mon.add_argument('--ticks', type=int, help='Stop after this many checks')
    p_mon.set_defaults(func=cmd_monitor)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    json_logs = settings.json_logs if args.json_logs is None else args.json_logs
    configure_logging('DEBUG' if args.verbose else settings.log_level, json_output=json_logs)
    logger = get_logger('portsight.cli')
    logger.debug(f"Running command {args.command}")

    ctx = AppContext.create(settings)
    return args.func(ctx, args)


if __name__ == '__main__':
    sys.exit(main())

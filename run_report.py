"""Render a Grafana dashboard into a paginated PDF report.

Usage:
    python run_report.py --dashboard abc123                        # defaults
    python run_report.py --dashboard abc123 --settings layout.json
    python run_report.py --dashboard abc123 --layout '{"panels": {"perPage": 4}}'
    python run_report.py --dashboard abc123 --var host=web1 --var host=web2
    python run_report.py --dashboard abc123 --from now-24h --to now --tz UTC --output out
"""

import argparse
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Optional, Sequence

sys.path.insert(0, str(Path(__file__).parent / "src"))

from dotenv import load_dotenv

from panel_reporter.config.settings import load_connection
from panel_reporter.exceptions import PanelReporterException
from panel_reporter.pipeline.report_runner import generate_dashboard_report
from panel_reporter.schemas.dashboard import RawTimeRange
from panel_reporter.schemas.layout import ReporterSettings, apply_layout_overrides, load_reporter_settings
from panel_reporter.schemas.variables import VariableValue, VariableValueMap
from panel_reporter.tools.render_client import GrafanaClient


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CANCELLED = 130


# ---------------------------------------------------------------------------
# CLI Argument Parsing
# ---------------------------------------------------------------------------

def parse_variable_args(pairs: Optional[Sequence[str]]) -> VariableValueMap:
    """
    Turn repeated ``name=value`` flags into a VariableValueMap.

    A name given more than once becomes a multi-select; ``name=`` alone
    clears the variable.
    """
    values: VariableValueMap = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        name = name.strip()
        if not sep or not name:
            raise argparse.ArgumentTypeError(f"--var expects name=value, got '{pair}'")
        entries = values.setdefault(name, [])
        if value != "":
            entries.append(VariableValue(value=value))
    return values


def parse_layout_override(text: str) -> dict:
    """argparse type for ``--layout``: a JSON object (camelCase or snake_case keys)."""
    try:
        value = json.loads(text)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"--layout expects a JSON object: {e}")
    if not isinstance(value, dict):
        raise argparse.ArgumentTypeError("--layout expects a JSON object")
    return value


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Grafana dashboard -> PDF panel report",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
environment:
  GRAFANA_URL               Grafana base URL (required)
  GRAFANA_API_TOKEN         service account token
  GRAFANA_RENDER_TIMEOUT    read timeout in seconds for render calls
  GRAFANA_USER_THEME        light|dark, resolves the 'user' theme preference
""",
    )
    parser.add_argument(
        "--dashboard", required=True, metavar="UID",
        help="Dashboard uid",
    )
    parser.add_argument(
        "--settings", type=Path, default=None,
        help="JSON file with reporter settings or a bare layout object",
    )
    parser.add_argument(
        "--layout", action="append", default=[], type=parse_layout_override, metavar="JSON",
        help="Layout override merged over the settings file (repeatable, later wins)",
    )
    parser.add_argument(
        "--var", action="append", default=[], metavar="NAME=VALUE",
        help="Template variable selection (repeat for multi-select)",
    )
    parser.add_argument("--from", dest="time_from", default=None, help="Range start (e.g. now-24h)")
    parser.add_argument("--to", dest="time_to", default=None, help="Range end (e.g. now)")
    parser.add_argument("--tz", default=None, help="Timezone passed to the renderer")
    parser.add_argument(
        "--output", type=Path, default=Path("output"),
        help="Output directory (default: output)",
    )
    parser.add_argument(
        "--concurrency", type=int, default=None, metavar="N",
        help="Parallel panel renders (overrides the settings file)",
    )
    parser.add_argument("--verbose", action="store_true", default=False, help="Debug logging")
    args = parser.parse_args(argv)
    if (args.time_from is None) != (args.time_to is None):
        parser.error("--from and --to must be given together")
    return args


def _build_settings(args: argparse.Namespace) -> ReporterSettings:
    settings = load_reporter_settings(args.settings) if args.settings else ReporterSettings()
    settings = apply_layout_overrides(settings, args.layout)
    if args.concurrency is not None:
        layout = settings.layout.model_copy(update={"render_concurrency": max(1, args.concurrency)})
        settings = settings.model_copy(update={"layout": layout})
    return settings


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cancel_event = threading.Event()

    def _on_sigint(signum, frame):
        print("\n[Report] Cancelling ...")
        cancel_event.set()

    signal.signal(signal.SIGINT, _on_sigint)

    try:
        manual = parse_variable_args(args.var)
        settings = _build_settings(args)
        client = GrafanaClient(load_connection())
        time_range = None
        if args.time_from is not None:
            time_range = RawTimeRange(time_from=args.time_from, time_to=args.time_to)

        try:
            outcome = generate_dashboard_report(
                client,
                args.dashboard,
                settings=settings,
                manual_variables=manual,
                time_range=time_range,
                timezone=args.tz,
                output_dir=args.output,
                on_progress=lambda message: print(f"[Report] {message}"),
                cancel_event=cancel_event,
            )
        finally:
            client.close()
    except (PanelReporterException, argparse.ArgumentTypeError) as e:
        print(f"\nERROR: {e}")
        return EXIT_FAILED

    if outcome.status == "cancelled":
        return EXIT_CANCELLED
    for warning in outcome.warnings:
        print(f"[Warning] {warning['error_type']}: {warning['message']}")
    print(f"[PDF] Saved: {outcome.file_path}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())

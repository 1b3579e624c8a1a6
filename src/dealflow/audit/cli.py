"""CLI query interface for the deal audit trail.

Filters by deal, actor, event kind, date range, or a shorthand ``--last``
duration.  Output formats: table (default) or JSON.

Usage::

    dealflow-audit --deal deal_123 --last 7d
    dealflow-audit --event BRAND_ACCEPTED --format json
"""

from __future__ import annotations

import argparse
import json
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from dealflow.audit.models import EventKind
from dealflow.audit.store import close_audit_db, init_audit_db, query_audit_trail


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser for audit trail queries.

    Returns:
        A configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(description="Query the deal audit trail")

    parser.add_argument("--deal", type=str, help="Filter by deal ID")
    parser.add_argument("--actor", type=str, help="Filter by actor ID (user id, brand, system)")
    parser.add_argument("--from-date", type=str, help="Start date (YYYY-MM-DD)")
    parser.add_argument("--to-date", type=str, help="End date (YYYY-MM-DD)")
    parser.add_argument(
        "--event",
        type=str,
        choices=[kind.value for kind in EventKind],
        help="Filter by event kind",
    )
    parser.add_argument("--last", type=str, help='Shorthand duration (e.g., "7d", "24h")')
    parser.add_argument(
        "--format",
        type=str,
        choices=["table", "json"],
        default="table",
        dest="output_format",
        help="Output format (default: table)",
    )
    parser.add_argument("--limit", type=int, default=50, help="Maximum results (default: 50)")
    parser.add_argument(
        "--db",
        type=str,
        default="data/audit.db",
        help="Path to audit database (default: data/audit.db)",
    )

    return parser


def parse_last_duration(last: str, now: datetime | None = None) -> str:
    """Convert a shorthand duration to an ISO 8601 timestamp.

    Supported formats are ``Nd`` (days) and ``Nh`` (hours).

    Args:
        last: Duration string like ``"7d"`` or ``"24h"``.
        now: Reference time, defaulting to the current UTC time.

    Returns:
        ISO 8601 date-time string for the computed past time.

    Raises:
        ValueError: If the format is not recognized.
    """
    if not last or len(last) < 2:
        msg = f"Unrecognized duration format: {last!r}"
        raise ValueError(msg)

    unit = last[-1]
    try:
        value = int(last[:-1])
    except ValueError:
        msg = f"Unrecognized duration format: {last!r}"
        raise ValueError(msg) from None

    now = now or datetime.now(tz=UTC)

    if unit == "d":
        result = now - timedelta(days=value)
    elif unit == "h":
        result = now - timedelta(hours=value)
    else:
        msg = f"Unrecognized duration format: {last!r}. Use 'd' for days or 'h' for hours."
        raise ValueError(msg)

    return result.strftime("%Y-%m-%dT%H:%M:%SZ")


def format_table(results: list[dict[str, Any]]) -> str:
    """Format audit results as a fixed-width table.

    Args:
        results: List of audit entry dicts from ``query_audit_trail``.

    Returns:
        Formatted table string with header row.
    """
    if not results:
        return "No results found."

    headers = ["Timestamp", "Event", "Deal", "Actor", "Metadata"]
    widths = [27, 26, 18, 14, 40]

    def truncate(value: Any, width: int) -> str:
        s = "" if value is None else str(value)
        if len(s) > width:
            return s[: width - 3] + "..."
        return s

    lines: list[str] = []
    header_line = "  ".join(h.ljust(w) for h, w in zip(headers, widths, strict=True))
    lines.append(header_line)
    lines.append("-" * len(header_line))

    for row in results:
        metadata = row.get("metadata")
        cells = [
            truncate(row.get("timestamp"), widths[0]),
            truncate(row.get("event"), widths[1]),
            truncate(row.get("deal_id"), widths[2]),
            truncate(row.get("actor_id"), widths[3]),
            truncate(json.dumps(metadata, sort_keys=True) if metadata else "", widths[4]),
        ]
        lines.append("  ".join(c.ljust(w) for c, w in zip(cells, widths, strict=True)))

    return "\n".join(lines)


def format_json(results: list[dict[str, Any]]) -> str:
    """Format audit results as a pretty-printed JSON string."""
    return json.dumps(results, indent=2)


def main(argv: Sequence[str] | None = None) -> None:
    """Parse arguments, query the audit trail, and print results."""
    parser = build_parser()
    args = parser.parse_args(argv)

    from_date = args.from_date
    if args.last:
        from_date = parse_last_duration(args.last)

    db_path = Path(args.db)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    conn = init_audit_db(db_path)

    try:
        results = query_audit_trail(
            conn,
            deal_id=args.deal,
            actor_id=args.actor,
            event=args.event,
            from_date=from_date,
            to_date=args.to_date,
            limit=args.limit,
        )
        output = format_json(results) if args.output_format == "json" else format_table(results)
        print(output)
    finally:
        close_audit_db(conn)


if __name__ == "__main__":
    main()

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
SRC_ROOT = REPO_ROOT / "src"
if str(SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(SRC_ROOT))

from trade_journal.ingest.errors import IngestError
from trade_journal.ingest.models import TargetField
from trade_journal.ingest.pipeline import import_trades, normalize_csv, rows_to_frame
from trade_journal.utils.logging import get_logger


def _parse_overrides(pairs: list[str] | None) -> dict[str, str | None]:
    overrides: dict[str, str | None] = {}
    for pair in pairs or []:
        header, sep, target = pair.partition("=")
        if not sep:
            raise argparse.ArgumentTypeError(f"Expected HEADER=FIELD, got '{pair}'")
        overrides[header.strip()] = target.strip() or None
    return overrides


def _parse_fallback_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid --fallback-date '{value}'") from exc


def _cmd_fields(_: argparse.Namespace) -> int:
    for target in TargetField:
        print(target.value)
    return 0


def _cmd_preview(args: argparse.Namespace) -> int:
    result = normalize_csv(
        Path(args.file).read_bytes(),
        manual_header_map=_parse_overrides(args.map),
        fallback_date=_parse_fallback_date(args.fallback_date),
        limit=args.limit,
    )
    print(f"broker={result.broker} delimiter={result.delimiter!r} rows={result.total_rows}")
    for header, target in result.header_mapping.items():
        print(f"  {header} -> {target.value if target else '(ignored)'}")
    frame = rows_to_frame(result.rows)
    if args.json:
        print(frame.to_json(orient="records", indent=2))
    else:
        print(frame.to_string(index=False))
    for warning in result.warnings:
        print(f"WARNING {warning}")
    return 0


def _cmd_import(args: argparse.Namespace) -> int:
    result = import_trades(
        Path(args.file).read_bytes(),
        manual_header_map=_parse_overrides(args.map),
        fallback_date=_parse_fallback_date(args.fallback_date),
        limit=args.limit,
    )
    frame = result.to_frame()
    if args.json:
        payload = {
            "stats": {
                "broker": result.stats.broker,
                "delimiter": result.stats.delimiter,
                "rows_processed": result.stats.rows_processed,
                "total_rows": result.stats.total_rows,
                "columns_matched": result.stats.columns_matched,
                "identifiers_synthesized": result.stats.identifiers_synthesized,
                "identifiers_supplied": result.stats.identifiers_supplied,
                "synthesized_rows": list(result.stats.synthesized_rows),
                "trades_reconstructed": result.stats.trades_reconstructed,
            },
            "trades": json.loads(frame.to_json(orient="records")),
            "warnings": result.warnings,
        }
        print(json.dumps(payload, indent=2))
        return 0

    print(
        f"broker={result.stats.broker} rows={result.stats.rows_processed} "
        f"trades={result.stats.trades_reconstructed} "
        f"synthesized_ids={result.stats.identifiers_synthesized}"
    )
    if not frame.empty:
        print(frame.to_string(index=False))
    for warning in result.warnings:
        print(f"WARNING {warning}")
    return 0


def _add_ingest_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("file", help="Path to the broker CSV export.")
    parser.add_argument(
        "--map",
        action="append",
        metavar="HEADER=FIELD",
        help="Manual header override; leave FIELD empty to ignore the column. Repeatable.",
    )
    parser.add_argument(
        "--fallback-date",
        default=None,
        help="ISO date used for bare times and missing timestamps.",
    )
    parser.add_argument("--limit", type=int, default=None, help="Only normalize the first N rows.")
    parser.add_argument("--json", action="store_true", help="Print JSON instead of a table.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Trade journal ingestion developer CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    sp_fields = subparsers.add_parser("fields", help="List canonical target fields")
    sp_fields.set_defaults(func=_cmd_fields)

    sp_preview = subparsers.add_parser("preview", help="Show header mapping and normalized rows")
    _add_ingest_arguments(sp_preview)
    sp_preview.set_defaults(func=_cmd_preview)

    sp_import = subparsers.add_parser("import", help="Normalize a CSV and reconstruct trades")
    _add_ingest_arguments(sp_import)
    sp_import.set_defaults(func=_cmd_import)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = get_logger("trade_journal.dev_cli")
    try:
        return args.func(args)
    except (argparse.ArgumentTypeError, IngestError) as exc:
        logger.debug("%s failed", args.command, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())

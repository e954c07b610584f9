from __future__ import annotations

import argparse
import json
import logging
import os
from typing import Any, Dict, List, Optional

from solders.pubkey import Pubkey

from .api.export import export_summary_csv
from .config import DEFAULT_OUTPUT_FOLDER, DEFAULT_VALIDATOR_CONFIG, ValidatorConfig
from .errors import SetupError
from .models.tree import ENDPOINT_DESCRIPTION, Endpoint, is_http_url, validate_endpoints
from .services.orchestrator import run_validation

logger = logging.getLogger("proof_parity")


def _pubkey(value: str) -> str:
    try:
        return str(Pubkey.from_string(value))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Invalid pubkey {value!r}: {exc}") from exc


def _endpoint(value: str) -> Endpoint:
    try:
        return Endpoint.parse(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _url(value: str) -> str:
    if not is_http_url(value):
        raise argparse.ArgumentTypeError("Endpoint URL must start with `http:` or `https:`.")
    return value


def _positive_int(value: str) -> int:
    try:
        parsed = int(value, 10)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("Not a number.") from exc
    if parsed < 1:
        raise argparse.ArgumentTypeError("Must be at least 1.")
    return parsed


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="proof-parity",
        description="Check that several endpoints serve identical, valid Merkle proofs for every leaf of a tree.",
    )
    parser.add_argument("-t", "--tree", required=True, type=_pubkey, help="The merkle tree Pubkey to validate proofs for")
    parser.add_argument(
        "-e",
        "--endpoint",
        required=True,
        action="append",
        type=_endpoint,
        dest="endpoints",
        help=f"An endpoint to check, may be repeated; the first one is canonical. {ENDPOINT_DESCRIPTION}",
    )
    parser.add_argument("-c", "--rpc", required=True, type=_url, help="An RPC url used to read the tree config")
    parser.add_argument(
        "-r",
        "--rate-limit",
        nargs="+",
        type=_positive_int,
        default=[DEFAULT_VALIDATOR_CONFIG.rate_limit],
        help="How many requests to send to each endpoint per second (one value, or one per endpoint)",
    )
    parser.add_argument(
        "-o",
        "--output-folder",
        type=lambda value: os.path.abspath(value),
        default=os.path.join(os.getcwd(), DEFAULT_OUTPUT_FOLDER),
        help="Which folder to write the invalid proof files to",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        default=False,
        help="Whether to allow writing (and potentially overwriting) to the output-folder if it already exists",
    )
    parser.add_argument(
        "--max-in-flight",
        type=_positive_int,
        default=DEFAULT_VALIDATOR_CONFIG.max_in_flight,
        help="Maximum number of leaves being checked at the same time",
    )
    parser.add_argument("--export-csv", default=None, help="Optional path to write per-endpoint counts as CSV")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )
    args = parser.parse_args(argv)
    try:
        validate_endpoints(args.endpoints)
    except ValueError as exc:
        parser.error(str(exc))
    if len(args.rate_limit) not in (1, len(args.endpoints)):
        parser.error(f"--rate-limit takes 1 or {len(args.endpoints)} values, got {len(args.rate_limit)}")
    return args


def _log_progress(event: Dict[str, Any]) -> None:
    if event.get("type") == "message":
        logger.info(event["message"])
        return
    data = event.get("data") or {}
    eta = data.get("time", {}).get("eta_seconds")
    counts = " | ".join(
        f"{item['label']} valid {item['valid']}/{item['checked']}" for item in data.get("endpoints", [])
    )
    logger.info(
        "Progress %s%% | ETA: %ss | %s/%s | %s",
        data.get("percentage", 0),
        eta if eta is not None else "?",
        data.get("completed_leaves", 0),
        data.get("total_leaves", 0),
        counts,
    )


def run_cli(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    config = ValidatorConfig(
        rate_limit=args.rate_limit[0],
        max_in_flight=args.max_in_flight,
    )
    try:
        summary = run_validation(
            tree_id=args.tree,
            rpc_url=args.rpc,
            endpoints=args.endpoints,
            output_dir=args.output_folder,
            force=args.force,
            rate_limits=args.rate_limit,
            config=config,
            callback=_log_progress,
        )
    except SetupError as exc:
        logger.error("Setup failed: %s", exc)
        raise SystemExit(1) from exc
    except Exception as exc:
        logger.exception("Validation failed")
        raise SystemExit(1) from exc
    if args.export_csv:
        try:
            with open(args.export_csv, "w", encoding="utf-8") as handle:
                handle.write(export_summary_csv(summary))
        except OSError as exc:
            logger.exception("Cannot write summary CSV to %s", args.export_csv)
            raise SystemExit(1) from exc
    print(json.dumps(summary.to_dict(), indent=2, sort_keys=True))


__all__ = ["parse_args", "run_cli"]

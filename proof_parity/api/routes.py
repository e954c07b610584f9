"""API routes for proof validation."""

import json
import queue
import re
import asyncio
import concurrent.futures
from pathlib import Path
from typing import AsyncGenerator, List, Optional

from fastapi import APIRouter, Form
from fastapi.responses import JSONResponse, Response, StreamingResponse

from ..config import (
    DEFAULT_OUTPUT_FOLDER,
    ValidatorConfig,
    DEFAULT_VALIDATOR_CONFIG,
    DEFAULT_APP_CONFIG,
)
from ..models.comparison import RunSummary
from ..models.tree import Endpoint, is_http_url, validate_endpoints
from ..services.orchestrator import run_validation
from .export import export_records_csv


router = APIRouter()

APP_CONFIG = DEFAULT_APP_CONFIG

DEFAULT_EXPORT_FILENAME = 'invalid_proofs.csv'

_UNSAFE_FILENAME_CHARS = re.compile(r'[\r\n"/\\]')


@router.get("/health")
async def health():
    """Liveness probe."""
    return {"status": "ok"}


async def _validate_with_progress(
    tree: str,
    rpc: str,
    endpoints: List[Endpoint],
    rate_limits: List[int],
    output_folder: str,
    force: bool,
    config: ValidatorConfig
) -> AsyncGenerator[str, None]:
    """Validate a tree with progress updates via SSE.

    Args:
        tree: Merkle tree address
        rpc: RPC url used for tree metadata
        endpoints: Endpoints to compare, canonical first
        rate_limits: One rate for all endpoints, or one per endpoint
        output_folder: Folder for mismatch artifacts
        force: Whether to reuse an existing folder
        config: Validator configuration

    Yields:
        SSE formatted progress updates
    """
    progress_queue: queue.Queue = queue.Queue()

    def progress_callback(data: dict):
        progress_queue.put(data)

    try:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(
                run_validation,
                tree,
                rpc,
                endpoints,
                output_folder,
                force,
                rate_limits,
                config,
                progress_callback
            )

            # Yield progress updates while waiting
            while not future.done():
                await asyncio.sleep(0.1)
                try:
                    while True:
                        data = progress_queue.get_nowait()
                        yield f"data: {json.dumps(data)}\n\n"
                except queue.Empty:
                    pass

            # Get result
            summary: RunSummary = future.result()

            # Send remaining progress
            try:
                while True:
                    data = progress_queue.get_nowait()
                    yield f"data: {json.dumps(data)}\n\n"
            except queue.Empty:
                pass

            # Send final result
            yield f"data: {json.dumps({'type': 'result', 'data': summary.to_dict()})}\n\n"

    except Exception as e:
        yield f"data: {json.dumps({'type': 'error', 'message': str(e)})}\n\n"


def _parse_endpoints(raw: str) -> List[Endpoint]:
    lines = [line for line in raw.splitlines() if line.strip()]
    return validate_endpoints([Endpoint.parse(line) for line in lines])


def _resolve_output_folder(folder: str) -> Path:
    """Resolve a client supplied folder under the configured output root.

    Raises:
        ValueError: the folder resolves outside the output root
    """
    root = Path(APP_CONFIG.output_root).resolve()
    resolved = (root / folder).resolve()
    if resolved != root and root not in resolved.parents:
        raise ValueError(f'Output folder must be inside {root}.')
    return resolved


def _safe_filename(filename: Optional[str]) -> str:
    cleaned = _UNSAFE_FILENAME_CHARS.sub('', filename or '').strip()
    return cleaned or DEFAULT_EXPORT_FILENAME


def _parse_rate_limits(raw: str) -> List[int]:
    values = [int(part) for part in raw.replace(',', ' ').split()]
    if not values or any(value < 1 for value in values):
        raise ValueError('Rate limits must be positive integers.')
    return values


@router.post("/validate")
async def validate(
    tree: str = Form(...),
    rpc: str = Form(...),
    endpoints: str = Form(...),
    rate_limit: str = Form("1"),
    output_folder: str = Form(DEFAULT_OUTPUT_FOLDER),
    force: str = Form("false"),
    max_in_flight: str = Form("")
):
    """Validate a tree against endpoints with real-time progress via SSE."""
    force_enabled = force.lower() in ('true', '1', 'yes', 'on')

    if not is_http_url(rpc):
        return JSONResponse(status_code=400, content={"error": "RPC URL must start with `http:` or `https:`."})

    try:
        endpoint_list = _parse_endpoints(endpoints)
        rate_limits = _parse_rate_limits(rate_limit)
        folder = _resolve_output_folder(output_folder)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    if len(rate_limits) not in (1, len(endpoint_list)):
        return JSONResponse(
            status_code=400,
            content={"error": f"Expected 1 or {len(endpoint_list)} rate limits, got {len(rate_limits)}"}
        )

    config = DEFAULT_VALIDATOR_CONFIG
    if max_in_flight:
        try:
            config = ValidatorConfig(max_in_flight=max(1, int(max_in_flight)))
        except ValueError:
            return JSONResponse(status_code=400, content={"error": "max_in_flight must be an integer"})

    return StreamingResponse(
        _validate_with_progress(
            tree,
            rpc,
            endpoint_list,
            rate_limits,
            str(folder),
            force_enabled,
            config
        ),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no"
        }
    )


@router.post("/export")
async def export(
    output_folder: str = Form(DEFAULT_OUTPUT_FOLDER),
    filename: Optional[str] = Form(None)
):
    """Export the mismatch artifacts of a folder as CSV."""
    try:
        folder = _resolve_output_folder(output_folder)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})

    try:
        csv_content = export_records_csv(folder)
    except FileNotFoundError as e:
        return JSONResponse(status_code=404, content={"error": f"Folder not found: {e}"})
    except (OSError, json.JSONDecodeError) as e:
        return JSONResponse(status_code=500, content={"error": f"Export failed: {str(e)}"})

    return Response(
        content=csv_content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{_safe_filename(filename)}"'}
    )

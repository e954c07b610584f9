"""Export functionality for CSV."""

import io
from typing import Dict, List, Tuple

import pandas as pd

from ..models.comparison import RunSummary
from ..services.recorder import PathLike, load_records

RECORD_COLUMNS = ['leaf_index', 'asset_id', 'endpoint', 'ok', 'verification', 'error']


def records_to_frame(records: List[Tuple[int, Dict]]) -> pd.DataFrame:
    """Flatten comparison artifacts into one row per leaf and endpoint.

    Args:
        records: (leaf_index, artifact) pairs as returned by load_records

    Returns:
        DataFrame with RECORD_COLUMNS
    """
    rows = []
    for leaf_index, artifact in records:
        asset_id = artifact.get('assetId')
        for label, entry in artifact.items():
            if label == 'assetId' or not isinstance(entry, dict):
                continue
            fetch_outcome = entry.get('fetchOutcome') or {}
            rows.append({
                'leaf_index': leaf_index,
                'asset_id': asset_id,
                'endpoint': label,
                'ok': bool(fetch_outcome.get('ok')),
                'verification': entry.get('verificationOutcome'),
                'error': fetch_outcome.get('error'),
            })
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def export_records_csv(output_dir: PathLike) -> str:
    """Export every mismatch artifact in a folder to CSV.

    Args:
        output_dir: Folder holding ``<leaf_index>.json`` artifacts

    Returns:
        CSV content as string
    """
    df = records_to_frame(load_records(output_dir))

    output = io.StringIO()
    df.to_csv(output, index=False)
    return output.getvalue()


def export_summary_csv(summary: RunSummary) -> str:
    """Export per-endpoint validity counts to CSV.

    Args:
        summary: Finished run summary

    Returns:
        CSV content as string
    """
    df = pd.DataFrame({
        'Endpoint': [e.label for e in summary.endpoints],
        'Valid': [e.valid for e in summary.endpoints],
        'Checked': [e.checked for e in summary.endpoints],
    })
    df['Unchecked'] = summary.completed_leaves - df['Checked']

    output = io.StringIO()
    df.to_csv(output, index=False)
    return output.getvalue()

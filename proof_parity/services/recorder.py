"""Persistence of comparison records for leaves where endpoints disagree."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Tuple, Union

from ..errors import PersistenceError, SetupError
from ..models.comparison import ComparisonRecord
from ..models.proof import EndpointResult

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


def _default_file_mode() -> int:
    """Mode a plain open() would give a new file under the current umask."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def prepare_output_dir(path: PathLike, force: bool = False) -> Path:
    """Create the output folder, refusing to reuse one unless forced.

    Raises:
        SetupError: the folder exists and force is False, or cannot be created
    """
    folder = Path(path)
    if folder.exists() and not force:
        raise SetupError(
            f"Proof folder {folder} already exists and `--force` wasn't passed in."
        )
    try:
        folder.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise SetupError(f"Cannot create proof folder {folder}: {e}") from e
    return folder


class MismatchRecorder:
    """Writes one JSON artifact per leaf whose endpoints are not all valid."""

    def __init__(self, output_dir: PathLike):
        self.output_dir = Path(output_dir)
        self.file_mode = _default_file_mode()

    def path_for(self, leaf_index: int) -> Path:
        return self.output_dir / f"{leaf_index}.json"

    def record(self,
               leaf_index: int,
               asset_id: str,
               results: Dict[str, EndpointResult]) -> bool:
        """Persist the comparison for a leaf unless every endpoint is valid.

        Args:
            leaf_index: Leaf position, also the artifact name
            asset_id: Asset id the proofs were requested for
            results: Per-endpoint results keyed by label, in endpoint order

        Returns:
            True if an artifact was written

        Raises:
            PersistenceError: the artifact could not be written
        """
        comparison = ComparisonRecord(leaf_index=leaf_index, asset_id=asset_id, results=results)
        if comparison.all_valid:
            return False

        self._write_atomic(self.path_for(leaf_index), comparison.to_dict(), leaf_index)
        logger.info("Leaf %d: endpoints disagree, wrote %s", leaf_index, self.path_for(leaf_index))
        return True

    def _write_atomic(self, target: Path, payload: Dict, leaf_index: int) -> None:
        """Write to a temporary file in the same folder, then rename over target."""
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{leaf_index}.", suffix='.tmp', dir=self.output_dir
            )
            with os.fdopen(fd, 'w', encoding='utf-8') as handle:
                json.dump(payload, handle, indent=2)
            os.chmod(tmp_name, self.file_mode)
            os.replace(tmp_name, target)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(leaf_index, str(e)) from e


def load_records(output_dir: PathLike) -> List[Tuple[int, Dict]]:
    """Read every artifact in a folder back, sorted by leaf index.

    Files that are not named ``<leaf_index>.json`` are ignored.
    """
    folder = Path(output_dir)
    if not folder.is_dir():
        raise FileNotFoundError(str(folder))
    records: List[Tuple[int, Dict]] = []
    for path in folder.glob('*.json'):
        if not path.stem.isdigit():
            continue
        with open(path, 'r', encoding='utf-8') as handle:
            records.append((int(path.stem), json.load(handle)))
    records.sort(key=lambda item: item[0])
    return records

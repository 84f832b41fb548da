import json
import threading
from pathlib import Path
from typing import Dict, Optional

from pydantic import ValidationError

from mcp_bonding_curve.amm import InMemoryPoolFactory
from mcp_bonding_curve.config import CURVE_STATE_DIR
from mcp_bonding_curve.coordinator import GraduationCoordinator
from mcp_bonding_curve.curve import BondingCurve
from mcp_bonding_curve.schemas import CurveRecord
from mcp.server.fastmcp.utilities.logging import get_logger

logger = get_logger(__name__)

# Determine the absolute path to the directory containing this file
MODULE_DIR = Path(__file__).parent.resolve()
STATE_PATH = MODULE_DIR / CURVE_STATE_DIR

# Collaborators shared by every curve in this process
pool_factory = InMemoryPoolFactory()
coordinator = GraduationCoordinator(pool_factory)

# In-memory registry of curves, keyed by curve id
curves: Dict[str, BondingCurve] = {}
_registry_lock = threading.Lock()


def save_curve_record(record: CurveRecord) -> bool:
    """Writes a curve record to its JSON state file."""
    STATE_PATH.mkdir(parents=True, exist_ok=True)
    file_path = STATE_PATH / f"{record.curve_id}.json"
    try:
        with open(file_path, "w") as f:
            json.dump(record.model_dump(mode="json"), f, indent=4)
        logger.debug(f"Saved curve state to {file_path}")
        return True
    except OSError as e:
        logger.error(f"Error saving curve state to {file_path}: {e}")
        return False


def _new_curve(record: CurveRecord) -> BondingCurve:
    return BondingCurve(record, coordinator, persist=save_curve_record)


def load_curves_from_state_files(state_path: Optional[Path] = None) -> Dict[str, BondingCurve]:
    """
    Loads curve records from JSON files in the state directory.

    Files that are not valid JSON or fail schema validation are logged and skipped, as are
    files whose name does not match the curve id they contain.

    Returns:
        A dictionary mapping curve id to a BondingCurve built from its record.
    """
    state_path = state_path or STATE_PATH
    loaded: Dict[str, BondingCurve] = {}

    if not state_path.is_dir():
        logger.info(f"Curve state directory not found: {state_path}. Starting with no curves.")
        return loaded

    for file_path in sorted(state_path.glob("*.json")):
        try:
            with open(file_path, "r") as f:
                record = CurveRecord.model_validate(json.load(f))
        except json.JSONDecodeError:
            logger.error(f"Error decoding JSON from file: {file_path}")
            continue
        except ValidationError as e:
            logger.error(f"Invalid curve state in file {file_path}: {e}")
            continue

        if record.curve_id != file_path.stem:
            logger.warning(f"Curve id mismatch in {file_path}: expected '{file_path.stem}', found '{record.curve_id}'. Skipping.")
            continue

        loaded[record.curve_id] = _new_curve(record)
        logger.info(f"Loaded curve state: {record.curve_id}")

    logger.info(f"Finished loading curves. Total loaded: {len(loaded)}")
    return loaded


def get_curve(curve_id: str) -> Optional[BondingCurve]:
    """Retrieves a curve by its id."""
    return curves.get(curve_id)


def get_or_create_curve(curve_id: str) -> BondingCurve:
    """Returns the curve for ``curve_id``, registering an uninitialized one if needed."""
    with _registry_lock:
        curve = curves.get(curve_id)
        if curve is None:
            curve = _new_curve(CurveRecord(curve_id=curve_id))
            curves[curve_id] = curve
            logger.debug(f"Registered new curve '{curve_id}'")
        return curve


def reload_curves() -> None:
    """Replaces the in-memory registry with the records on disk."""
    global curves
    with _registry_lock:
        curves = load_curves_from_state_files()


# --- Initial Load ---
# Load curves when the module is imported
curves = load_curves_from_state_files()

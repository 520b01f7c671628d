"""
serialization.py - Conversion of catalogue values to JSON-serializable types

Rows coming back from VizieR, IRSA or pandas carry numpy scalars, masked
values and NaNs; they are stored as JSON and written to reports.
"""

import math
from datetime import datetime
from typing import Any

import numpy as np
from astropy.time import Time


def sanitize_for_json(obj: Any) -> Any:
    """
    Sanitize Python objects to be JSON-serializable.

    Masked values and NaNs become None.

    Args:
        obj: Python object to sanitize.

    Returns:
        JSON-serializable object.
    """
    if obj is None or obj is np.ma.masked:
        return None

    if isinstance(obj, (bool, np.bool_)):
        return bool(obj)

    if isinstance(obj, str):
        return obj

    if isinstance(obj, bytes):
        return obj.decode('utf-8', errors='replace')

    if isinstance(obj, (int, np.integer)):
        return int(obj)

    if isinstance(obj, (float, np.floating)):
        value = float(obj)
        return None if math.isnan(value) or math.isinf(value) else value

    if isinstance(obj, Time):
        return obj.isot

    if isinstance(obj, datetime):
        return obj.isoformat()

    if isinstance(obj, (list, tuple)):
        return [sanitize_for_json(item) for item in obj]

    if isinstance(obj, np.ndarray):
        return [sanitize_for_json(item) for item in obj.tolist()]

    if isinstance(obj, dict):
        return {str(key): sanitize_for_json(value) for key, value in obj.items()}

    # Last resort: convert to string
    return str(obj)

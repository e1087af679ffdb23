#!/usr/bin/env python3
"""
Filename utilities for generating output filenames.
"""

import os
import re
import logging

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 180


def _safe_name(value: str) -> str:
    """Replace characters that are unsafe in filenames."""
    return re.sub(r"[^\w.\-]+", "_", value).strip("_") or "unnamed"


def generate_output_filename(
    device_id: str, correlation_id: str, extension: str, directory: str = ""
) -> str:
    """
    Generates an output filename for a trace and reserves it by creating an empty file.

    Strategy:
    1. Use "<device> <job>.<extension>"
    2. If file exists, try " (1)", " (2)", etc. (by attempting to create exclusively)
    3. Stop at 180 attempts

    Args:
        device_id: Device the trace belongs to
        correlation_id: Job order the trace belongs to
        extension: File extension without the dot, e.g. "gpx"
        directory: Directory for the file (default: current directory)

    Returns:
        Safe output filename that has been created as an empty file to reserve its name

    Raises:
        RuntimeError: If no available filename found after 180 attempts
        ValueError: If a filename cannot be created (e.g., due to permissions)
    """
    base_output = f"{_safe_name(device_id)} {_safe_name(correlation_id)}"

    for i in range(MAX_ATTEMPTS + 1):
        suffix = "" if i == 0 else f" ({i})"
        candidate = os.path.join(directory, f"{base_output}{suffix}.{extension}")
        try:
            with open(candidate, "x"):
                pass
            return candidate
        except FileExistsError:
            continue
        except (PermissionError, OSError) as e:
            logger.error(f"Cannot create file {candidate}: {e}")
            raise ValueError(f"Cannot create file: {e}")

    logger.error(
        f"Could not find an available filename after {MAX_ATTEMPTS} attempts. "
        f"Please clean up your output directory or specify the output file explicitly."
    )
    raise RuntimeError(f"No available filename found after {MAX_ATTEMPTS} attempts")

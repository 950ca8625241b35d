"""JSON export of a full storage snapshot.

Produces every collection plus a metadata block with per-collection
counts and the snapshot version the export was taken at.

"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from propertydex.models import COLLECTIONS, Snapshot


def export_snapshot_json(
    snapshot: Snapshot,
    output_path: str | None = None,
) -> str:
    """Export a snapshot to JSON format.

    Args:
        snapshot: Snapshot to export.
        output_path: File path to write. If None, returns JSON string.

    Returns:
        JSON string, or file path if output_path given.

    """
    export_data: dict[str, Any] = {
        "metadata": {
            "export_date": datetime.now(tz=UTC).isoformat(),
            "format_version": "1.0",
            "source": "PropertyDex",
            "snapshot_version": snapshot.version,
        },
    }
    for name in COLLECTIONS:
        rows = snapshot.collection(name)
        export_data[name] = rows
        export_data["metadata"][f"{name}_count"] = len(rows)

    content = json.dumps(export_data, indent=2, default=str)

    if output_path:
        Path(output_path).write_text(content, encoding="utf-8")
        return output_path
    return content

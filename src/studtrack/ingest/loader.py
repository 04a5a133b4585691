from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from studtrack.domain.errors import ParseError
from studtrack.domain.models import Batch
from studtrack.ingest.normalizer import OnError, normalize_batch


def load_document(path: Path) -> Any:
    if not path.exists():
        raise FileNotFoundError(f"Input file does not exist: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ParseError(f"invalid JSON in {path}: {exc.msg} (line {exc.lineno})", field="<document>") from exc
    except UnicodeDecodeError as exc:
        raise ParseError(f"{path} is not UTF-8 text: {exc.reason}", field="<document>") from exc


def load_batch(path: Path, *, on_error: OnError = "abort") -> Batch:
    return normalize_batch(load_document(path), on_error=on_error)

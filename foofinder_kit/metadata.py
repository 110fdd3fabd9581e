from __future__ import annotations

import re
from typing import Dict, Mapping, Optional

DEFAULT_CLASS_NAMES: Dict[int, str] = {0: "foo", 1: "not_foo"}
UNKNOWN_CLASS_NAME = "unknown"


def class_name_for(class_id: Optional[int], names: Optional[Mapping[int, str]] = None) -> str:
    if class_id is None:
        return UNKNOWN_CLASS_NAME
    mapping = DEFAULT_CLASS_NAMES if names is None else names
    return mapping.get(int(class_id), UNKNOWN_CLASS_NAME)


_NAME_ENTRY = re.compile(r"""^\s+(\d+)\s*:\s*['"]?(.*?)['"]?\s*$""")


def load_class_names(metadata_path: str) -> Dict[int, str]:
    """
    Read the indented `names:` block of the `metadata.yaml` written by the model export,
    e.g. `  0: foo`. Other top-level keys are skipped and the block ends at the next one.
    """

    with open(metadata_path, "r", encoding="utf-8") as f:
        lines = [ln.rstrip("\n") for ln in f if ln.strip() and not ln.lstrip().startswith("#")]

    try:
        start = next(i for i, ln in enumerate(lines) if ln.strip() == "names:") + 1
    except StopIteration:
        return {}

    names: Dict[int, str] = {}
    for ln in lines[start:]:
        if not ln[:1].isspace():
            break
        m = _NAME_ENTRY.match(ln)
        if m:
            names[int(m.group(1))] = m.group(2)
    return names

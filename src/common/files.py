from __future__ import annotations

import os
from pathlib import Path
from uuid import uuid4


def write_text_atomic(path: os.PathLike[str] | str, text: str) -> None:
    """Write `text` to a temporary sibling, then rename it over `path`.

    An interrupted write leaves the previous file in place. The temporary
    file is removed on every failing path; errors are raised as `OSError`.
    """
    target = Path(path)
    tmp = target.with_name(f"{target.name}.tmp-{uuid4().hex}")
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with tmp.open("w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp, target)
    finally:
        if tmp.exists():
            tmp.unlink()

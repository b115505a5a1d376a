"""Output reporting helpers."""
from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, TextIO

from .geo import format_distance
from .view import ViewState


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _fsync_dir(path: str) -> None:
    try:
        dir_fd = os.open(path, os.O_DIRECTORY)
    except (OSError, AttributeError):
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


@contextmanager
def atomic_writer(
    path: str,
    mode: str = "w",
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> Iterator[TextIO]:
    dir_path = os.path.dirname(path) or "."
    base = os.path.basename(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{base}.", suffix=".tmp", dir=dir_path)
    try:
        with os.fdopen(fd, mode, encoding=encoding, newline=newline) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        _fsync_dir(dir_path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def atomic_write_text(path: str, text: str) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        f.write(text)


def write_json_object(path: str, payload: Dict[str, Any]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def write_view_json(path: str, view: ViewState) -> None:
    write_json_object(path, view.to_dict())


def render_summary(view: ViewState) -> str:
    counts = view.counts
    lines: List[str] = [
        f'Search results for "{view.query}": {view.total_count} results '
        f"({counts['items']} items, {counts['services']} services, "
        f"{counts['shops']} shops, {counts['offices']} offices)",
        f"- sort: {view.sort.value}, category: {view.category.value}",
    ]
    if view.direct_hit:
        lines.append("- exact reference match")

    for label, results in (("Items", view.items), ("Services", view.services)):
        if not results:
            continue
        lines.append(f"{label}:")
        for r in results:
            extras = [r.shop_name] if r.shop_name else []
            if r.price is not None:
                extras.append(f"{r.price:.2f}")
            distance = format_distance(r.distance_km)
            if distance:
                extras.append(distance)
            if r.is_unavailable:
                extras.append("unavailable")
            ref = f" [{r.reference_id}]" if r.reference_id else ""
            lines.append(f"  - {r.name}{ref}" + (f" ({', '.join(extras)})" if extras else ""))

    for label, shops in (("Shops", view.shops), ("Offices", view.offices)):
        if not shops:
            continue
        lines.append(f"{label}:")
        for s in shops:
            extras = [s.address] if s.address else []
            distance = format_distance(s.distance_km)
            if distance:
                extras.append(distance)
            if s.average_rating is not None:
                extras.append(f"rating {s.average_rating:.1f}")
            lines.append(f"  - {s.shop_name}" + (f" ({', '.join(extras)})" if extras else ""))

    if view.suggestions:
        lines.append(f"Did you mean: {', '.join(view.suggestions)}?")
    return "\n".join(lines)

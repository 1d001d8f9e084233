"""Run storage utilities."""

from __future__ import annotations

import json
import re
from datetime import datetime
from pathlib import Path
from typing import List

import numpy as np
from PIL import Image

from fringe_sync.core.models import FringeImage, RunMeta, orientation_letter


CAPTURE_RE = re.compile(r"^I(\d+)_([VH])\.png$")


class RunStore:
    """Filesystem-backed storage for capture runs."""

    def __init__(self, root: str = "data/runs") -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def create_run(self, params: dict, device_info: dict) -> tuple[str, Path, RunMeta]:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        run_id = stamp
        i = 0
        while (self.root / run_id).exists():
            i += 1
            run_id = f"{stamp}_{i:02d}"
        run_dir = self.root / run_id
        run_dir.mkdir(parents=True, exist_ok=True)
        (run_dir / "captures").mkdir(exist_ok=True)

        meta = RunMeta(
            run_id=run_id,
            params=params,
            started_at=datetime.now().isoformat(),
            finished_at=None,
            status="running",
            error=None,
            device_info=device_info,
            total_frames=0,
            saved_frames=0,
        )
        self.save_meta(run_dir, meta)
        return run_id, run_dir, meta

    def run_dir(self, run_id: str) -> Path:
        return self.root / run_id

    def captures_dir(self, run_dir: Path) -> Path:
        return run_dir / "captures"

    def save_pattern(self, run_dir: Path, index: int, image: FringeImage) -> Path:
        pat_dir = run_dir / "patterns"
        pat_dir.mkdir(exist_ok=True, parents=True)
        out_path = pat_dir / f"pattern_{index + 1:03d}_{orientation_letter(image.orientation)}.png"
        Image.fromarray(np.ascontiguousarray(image.pixels)).save(out_path)
        return out_path

    def save_patterns(self, run_dir: Path, images: list[FringeImage]) -> list[Path]:
        return [self.save_pattern(run_dir, i, img) for i, img in enumerate(images)]

    def save_meta(self, run_dir: Path, meta: RunMeta) -> None:
        out_path = run_dir / "meta.json"
        out_path.write_text(json.dumps(meta.to_dict(), indent=2))

    def load_meta(self, run_dir: Path) -> RunMeta:
        data = json.loads((run_dir / "meta.json").read_text())
        return RunMeta(**data)

    def list_runs(self) -> List[RunMeta]:
        if not self.root.exists():
            return []
        metas: List[RunMeta] = []
        for run_dir in sorted(self.root.iterdir(), reverse=True):
            if not run_dir.is_dir():
                continue
            meta_path = run_dir / "meta.json"
            if not meta_path.exists():
                continue
            try:
                metas.append(RunMeta(**json.loads(meta_path.read_text())))
            except (ValueError, TypeError):
                continue
        return metas

    def capture_paths(self, run_id: str) -> List[Path]:
        cap_dir = self.captures_dir(self.run_dir(run_id))
        if not cap_dir.exists():
            raise FileNotFoundError(f"Captures not found for run {run_id}")
        indexed = []
        for p in cap_dir.glob("*.png"):
            m = CAPTURE_RE.match(p.name)
            if m:
                indexed.append((int(m.group(1)), p))
        indexed.sort(key=lambda x: x[0])
        return [p for _, p in indexed]

    def missing_indices(self, run_id: str, expected_total: int) -> List[int]:
        """1-based indices with no saved capture, for gap detection downstream."""
        present = set()
        for p in self.capture_paths(run_id):
            m = CAPTURE_RE.match(p.name)
            if m:
                present.add(int(m.group(1)))
        return [i for i in range(1, expected_total + 1) if i not in present]

    def load_captures(self, run_id: str) -> List[np.ndarray]:
        return [np.array(Image.open(p)) for p in self.capture_paths(run_id)]

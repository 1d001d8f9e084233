"""CLI commands for pattern generation and capture runs."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List

import yaml
from PIL import Image

from fringe_sync.core.errors import FringeSyncError
from fringe_sync.core.logging import setup_logging
from fringe_sync.core.models import CameraSettings, FringeParameters, Illumination, PatternTiming
from fringe_sync.core.session import run_scan
from fringe_sync.core.timing import TimingConfig
from fringe_sync.io.run_store import RunStore
from fringe_sync.patterns.generator import FringePatternGenerator


def _load_config(path: str | None = None) -> dict:
    cfg_path = Path(path or "config/default.yaml")
    if not cfg_path.exists():
        return {}
    return yaml.safe_load(cfg_path.read_text()) or {}


def _fringe_params(args, cfg: dict) -> FringeParameters:
    f_cfg = cfg.get("fringe", {})

    def pick(name: str, default):
        value = getattr(args, name, None)
        return f_cfg.get(name, default) if value is None else value

    return FringeParameters(
        width=int(pick("width", 1920)),
        height=int(pick("height", 1080)),
        frequency=int(pick("frequency", 32)),
        intensity=float(pick("intensity", 100)),
        offset=float(pick("offset", 128)),
        noise_std=float(pick("noise_std", 0.0)),
        steps=int(pick("steps", 4)),
        seed=pick("seed", None),
    )


def _pattern_timing(cfg: dict) -> PatternTiming:
    p_cfg = cfg.get("pattern_timing", {})
    return PatternTiming(
        exposure_us=int(p_cfg.get("exposure_us", 4000)),
        pre_exposure_us=int(p_cfg.get("pre_exposure_us", 3000)),
        post_exposure_us=int(p_cfg.get("post_exposure_us", 3000)),
        illumination=Illumination(str(p_cfg.get("illumination", "blue")).lower()),
        invert=bool(p_cfg.get("invert", False)),
        one_bit=bool(p_cfg.get("one_bit", False)),
    )


def _camera_settings(args, cfg: dict) -> CameraSettings:
    c_cfg = cfg.get("camera", {})
    exposure = getattr(args, "exposure_us", None)
    gain = getattr(args, "gain", None)
    return CameraSettings(
        exposure_us=float(c_cfg.get("exposure_us", 10000.0) if exposure is None else exposure),
        gain=float(c_cfg.get("gain", 5.0) if gain is None else gain),
        frame_rate=float(c_cfg.get("frame_rate", 10.0)),
        trigger_delay_us=int(c_cfg.get("trigger_delay_us", 0)),
        exposure_auto=bool(c_cfg.get("exposure_auto", False)),
        gain_auto=bool(c_cfg.get("gain_auto", False)),
    )


def _led_current(cfg: dict) -> tuple[float, float, float] | None:
    led = cfg.get("projector", {}).get("led_current")
    if led is None:
        return None
    r, g, b = (float(v) for v in led)
    return r, g, b


def _devices_from_cfg(args, cfg: dict, params: FringeParameters):
    proj_cfg = cfg.get("projector", {})
    cam_cfg = cfg.get("camera", {})
    mock = bool(getattr(args, "mock", False))

    proj_type = "mock" if mock else proj_cfg.get("type", "mock")
    if proj_type == "pygame":
        from fringe_sync.projector.pygame_display import PygameProjector
        projector = PygameProjector(screen_index=proj_cfg.get("screen_index"))
    elif proj_type == "mock":
        from fringe_sync.projector.mock import MockProjector
        projector = MockProjector()
    else:
        raise RuntimeError("projector.type must be pygame or mock")

    cam_type = "mock" if mock else cam_cfg.get("type", "mock")
    if cam_type == "picamera2":
        from fringe_sync.camera.picamera2_impl import Picamera2Camera
        camera = Picamera2Camera(
            width=int(cam_cfg.get("width", params.width)),
            height=int(cam_cfg.get("height", params.height)),
            flush_frames=int(cam_cfg.get("flush_frames", 1)),
        )
    elif cam_type == "mock":
        from fringe_sync.camera.mock import MockCamera
        source = getattr(projector, "current_image", None)
        camera = MockCamera(width=params.width, height=params.height, frame_source=source)
    else:
        raise RuntimeError("camera.type must be picamera2 or mock")
    return projector, camera


def cmd_generate(args) -> int:
    cfg = _load_config(args.config)
    params = _fringe_params(args, cfg)
    images = FringePatternGenerator().generate(params)
    if not images:
        print("Invalid fringe parameters; nothing generated")
        return 1
    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    for i, img in enumerate(images, start=1):
        letter = "V" if img.orientation == "vertical" else "H"
        Image.fromarray(img.pixels.copy()).save(out_dir / f"I{i}_{letter}.png")
    print(f"Wrote {len(images)} patterns to {out_dir}")
    return 0


def cmd_scan(args) -> int:
    cfg = _load_config(args.config)
    log = setup_logging(cfg.get("logging", {}).get("dir", "logs"))
    params = _fringe_params(args, cfg)
    timing = TimingConfig.from_dict(cfg.get("timing"))
    store = RunStore(root=cfg.get("storage", {}).get("run_root", "data/runs"))
    try:
        projector, camera = _devices_from_cfg(args, cfg, params)
    except Exception as exc:
        log.error("Device setup failed: %s", exc)
        return 1

    # Upload requires a freshly connected projector, so connect per run.
    try:
        connected = projector.connect()
    except Exception as exc:
        log.error("Projector connection failed: %s", exc)
        return 1
    if not connected:
        log.error("Projector connection failed")
        return 1
    try:
        camera.open()
    except Exception as exc:
        log.error("Camera open failed: %s", exc)
        projector.disconnect()
        return 1

    try:
        run_id, result = run_scan(
            params,
            projector,
            camera,
            store,
            pattern_timing=_pattern_timing(cfg),
            timing=timing,
            camera_settings=_camera_settings(args, cfg),
            led_current=_led_current(cfg),
            save_patterns=bool(args.save_patterns or cfg.get("storage", {}).get("save_patterns", False)),
            index_width=int(cfg.get("storage", {}).get("index_width", 3)),
        )
    except FringeSyncError as exc:
        log.error("Scan failed: %s", exc)
        return 1
    finally:
        camera.close()
        projector.disconnect()

    print(f"run_id={run_id}")
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.ok else 1


def cmd_runs(args) -> int:
    cfg = _load_config(args.config)
    store = RunStore(root=cfg.get("storage", {}).get("run_root", "data/runs"))
    for meta in store.list_runs():
        print(f"{meta.run_id}  {meta.status:<9}  {meta.saved_frames}/{meta.total_frames}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="fringe_sync")
    p.add_argument("--config", type=str, default=None)
    sub = p.add_subparsers(dest="cmd")

    def add_fringe_args(parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--width", type=int, default=None)
        parser.add_argument("--height", type=int, default=None)
        parser.add_argument("--frequency", type=int, default=None)
        parser.add_argument("--intensity", type=float, default=None)
        parser.add_argument("--offset", type=float, default=None)
        parser.add_argument("--noise-std", type=float, default=None)
        parser.add_argument("--steps", type=int, default=None)
        parser.add_argument("--seed", type=int, default=None)

    generate = sub.add_parser("generate")
    add_fringe_args(generate)
    generate.add_argument("--out", type=str, default="patterns")

    scan = sub.add_parser("scan")
    add_fringe_args(scan)
    scan.add_argument("--exposure-us", type=float, default=None)
    scan.add_argument("--gain", type=float, default=None)
    scan.add_argument("--save-patterns", action="store_true")
    scan.add_argument("--mock", action="store_true")

    sub.add_parser("runs")
    return p


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.cmd == "generate":
        return cmd_generate(args)
    if args.cmd == "scan":
        return cmd_scan(args)
    if args.cmd == "runs":
        return cmd_runs(args)
    parser.print_help()
    return 0

from __future__ import annotations
"""Story assembly planner: turns an AssemblyRequest into one ffmpeg invocation.

Stages, in filter-graph order:

    1. normalize + concat   clips scaled to the first clip, video streams only
    2. extension            hold the last frame (static or zoom) up to the target
    3. audio                music gain (+ trim), optional narration gain + amix
    4. fade                 2s afade out before the target, or pass-through
    5. output               libx264 / aac, hard -t cutoff or -shortest

``build_plan`` is pure: it only looks at the request and the measurements in
``ResolvedInputs``. File lookups and ffprobe calls live in ``resolve_inputs``.
"""

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from mediaforge.schemas.assembly import AssemblyRequest
from mediaforge.services.ffmpeg_service import MediaProbe

logger = logging.getLogger(__name__)

MIN_VIDEOS = 1
MAX_VIDEOS = 3
ZOOM_MAX = 1.2
FADE_SECONDS = 2.0
DEFAULT_SIZE = (1920, 1080)
URL_PREFIX = "/assets/"

# Fixed encode profile
VIDEO_CODEC_ARGS = ("-c:v", "libx264", "-preset", "fast", "-crf", "23", "-pix_fmt", "yuv420p")
AUDIO_CODEC_ARGS = ("-c:a", "aac", "-b:a", "192k")


class AssemblyValidationError(ValueError):
    """Request rejected before ffmpeg runs (missing file, bad clip count...)."""


class AssemblyError(RuntimeError):
    """ffmpeg failed or produced nothing usable."""


def fmt(value: float) -> str:
    """Render a number for the filter graph without float noise (2.0 -> '2')."""
    text = format(float(value), ".6f").rstrip("0").rstrip(".")
    return text if text not in ("", "-0") else "0"


def zoom_factor(n: int, held_frame_count: int) -> float:
    """Magnification at frame ``n`` of the held region (0 = first held frame)."""
    if held_frame_count <= 0:
        return 1.0
    return min(1.0 + ((ZOOM_MAX - 1.0) / held_frame_count) * max(n, 0), ZOOM_MAX)


def zoom_schedule(held_frame_count: int) -> list[float]:
    return [zoom_factor(n, held_frame_count) for n in range(held_frame_count + 1)]


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def resolve_asset_path(ref: str, assets_dir: str | os.PathLike[str]) -> Path:
    """Map an asset reference (``/assets/...`` or relative) under ``assets_dir``."""
    relative = ref[len(URL_PREFIX):] if ref.startswith(URL_PREFIX) else ref.lstrip("/")
    root = Path(assets_dir).resolve()
    path = (root / relative).resolve()
    if path != root and root not in path.parents:
        raise AssemblyValidationError(f"Asset reference outside assets directory: {ref}")
    return path


@dataclass(frozen=True)
class ResolvedInputs:
    """Local paths plus ffprobe measurements for one request."""

    videos: tuple[str, ...]
    video_durations: tuple[float, ...]
    width: int
    height: int
    music: str
    narration: str | None = None

    @property
    def concat_duration(self) -> float:
        return sum(self.video_durations)


def resolve_inputs(
    request: AssemblyRequest,
    assets_dir: str | os.PathLike[str],
    probe: Callable[[str], MediaProbe],
) -> ResolvedInputs:
    """Check every referenced file exists and measure the clips. Blocking."""
    count = len(request.videos)
    if not MIN_VIDEOS <= count <= MAX_VIDEOS:
        raise AssemblyValidationError(f"Expected {MIN_VIDEOS}-{MAX_VIDEOS} videos, got {count}")

    def existing(ref: str, label: str) -> str:
        path = resolve_asset_path(ref, assets_dir)
        if not path.is_file():
            raise AssemblyValidationError(f"{label} not found: {ref}")
        return str(path)

    videos = tuple(existing(ref, "Video") for ref in request.videos)
    music = existing(request.music.file, "Music")
    narration = existing(request.narration.file, "Narration") if request.narration_enabled else None

    probes = [probe(path) for path in videos]
    width = probes[0].width or DEFAULT_SIZE[0]
    height = probes[0].height or DEFAULT_SIZE[1]
    logger.info(
        "Resolved %d clips (%s) at %dx%d",
        count, ", ".join(f"{p.duration:.2f}s" for p in probes), width, height,
    )
    return ResolvedInputs(
        videos=videos,
        video_durations=tuple(p.duration for p in probes),
        width=width,
        height=height,
        music=music,
        narration=narration,
    )


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PlanInput:
    path: str
    options: tuple[str, ...] = ()  # input-side options, e.g. ("-ss", "3")


@dataclass(frozen=True)
class PlanStage:
    name: str
    graph: str


@dataclass(frozen=True)
class AssemblyPlan:
    inputs: tuple[PlanInput, ...]
    stages: tuple[PlanStage, ...]
    output_options: tuple[str, ...]
    output_path: str
    fps: int
    concat_duration: float
    target_duration: float | None
    hold_duration: float
    held_frame_count: int
    hold_start_frame: int

    @property
    def expected_duration(self) -> float:
        """Nominal length; the executor reports the probed one."""
        return self.target_duration if self.target_duration is not None else self.concat_duration

    def stage(self, name: str) -> PlanStage:
        for stage in self.stages:
            if stage.name == name:
                return stage
        raise KeyError(name)

    def filter_complex(self) -> str:
        return ";".join(stage.graph for stage in self.stages)

    def to_command(self, ffmpeg_bin: str = "ffmpeg") -> list[str]:
        cmd = [ffmpeg_bin, "-y"]
        for item in self.inputs:
            cmd.extend(item.options)
            cmd.extend(["-i", item.path])
        cmd.extend(["-filter_complex", self.filter_complex()])
        cmd.extend(self.output_options)
        cmd.append(self.output_path)
        return cmd


def build_plan(
    request: AssemblyRequest,
    resolved: ResolvedInputs,
    output_path: str,
    *,
    fps: int = 24,
) -> AssemblyPlan:
    """Derive the full ffmpeg plan. Pure; raises AssemblyValidationError."""
    count = len(resolved.videos)
    if not MIN_VIDEOS <= count <= MAX_VIDEOS:
        raise AssemblyValidationError(f"Expected {MIN_VIDEOS}-{MAX_VIDEOS} videos, got {count}")

    concat = resolved.concat_duration
    target = request.target_duration
    if target is not None:
        if target <= 0:
            raise AssemblyValidationError(f"Target duration must be positive, got {fmt(target)}s")
        if target < concat - 1e-6:
            raise AssemblyValidationError(
                f"Target duration {fmt(target)}s is shorter than the clips ({fmt(concat)}s); "
                "assembly never truncates"
            )

    hold = max(target - concat, 0.0) if target is not None else 0.0
    if hold < 1e-6:
        hold = 0.0
    held_frames = max(1, round(hold * fps)) if hold else 0
    hold_start = max(0, round(concat * fps) - 1) if hold else 0

    # ── inputs ──
    inputs = [PlanInput(path) for path in resolved.videos]
    music_idx = len(inputs)
    trim: list[str] = []
    if request.music.start_time is not None:
        trim += ["-ss", fmt(request.music.start_time)]
    if request.music.end_time is not None:
        trim += ["-to", fmt(request.music.end_time)]
    inputs.append(PlanInput(resolved.music, tuple(trim)))
    narration_idx = None
    if resolved.narration is not None:
        narration_idx = len(inputs)
        inputs.append(PlanInput(resolved.narration))

    stages: list[PlanStage] = []
    w, h = resolved.width, resolved.height

    # ── 1. normalize + concat (source audio is never mapped) ──
    normalize = ";".join(
        f"[{i}:v]scale={w}:{h}:force_original_aspect_ratio=decrease,"
        f"pad={w}:{h}:(ow-iw)/2:(oh-ih)/2,setsar=1,setpts=PTS-STARTPTS[v{i}]"
        for i in range(count)
    )
    stages.append(PlanStage("normalize", normalize))
    labels = "".join(f"[v{i}]" for i in range(count))
    stages.append(PlanStage("concat", f"{labels}concat=n={count}:v=1:a=0[vconcat]"))

    # ── 2. extension ──
    if not hold:
        stages.append(PlanStage("extend", "[vconcat]null[v]"))
    elif request.enable_zoom:
        step = fmt((ZOOM_MAX - 1.0) / held_frames)
        z = f"if(lt(on,{hold_start}),1,min(1+{step}*(on-{hold_start}),{fmt(ZOOM_MAX)}))"
        stages.append(PlanStage(
            "extend",
            f"[vconcat]fps={fps},tpad=stop_mode=clone:stop_duration={fmt(hold)},"
            f"zoompan=z='{z}':d=1:x='iw/2-(iw/zoom/2)':y='ih/2-(ih/zoom/2)'"
            f":s={w}x{h}:fps={fps}[v]",
        ))
    else:
        stages.append(PlanStage("extend", f"[vconcat]tpad=stop_mode=clone:stop_duration={fmt(hold)}[v]"))

    # ── 3. audio ──
    stages.append(PlanStage("music", f"[{music_idx}:a]volume={fmt(request.music.volume)}[music]"))
    if narration_idx is not None:
        stages.append(PlanStage(
            "narration",
            f"[{narration_idx}:a]volume={fmt(request.narration.volume)}[narr];"
            "[music][narr]amix=inputs=2:duration=shortest[amix]",
        ))
    else:
        stages.append(PlanStage("narration", "[music]anull[amix]"))

    # ── 4. fade ──
    if request.enable_fade_out and target is not None and target > FADE_SECONDS:
        stages.append(PlanStage(
            "fade", f"[amix]afade=t=out:st={fmt(target - FADE_SECONDS)}:d={fmt(FADE_SECONDS)}[a]",
        ))
    else:
        stages.append(PlanStage("fade", "[amix]acopy[a]"))

    # ── 5. output ──
    output = ["-map", "[v]", "-map", "[a]", *VIDEO_CODEC_ARGS, *AUDIO_CODEC_ARGS, "-r", str(fps)]
    output += ["-t", fmt(target)] if target is not None else ["-shortest"]

    return AssemblyPlan(
        inputs=tuple(inputs),
        stages=tuple(stages),
        output_options=tuple(output),
        output_path=output_path,
        fps=fps,
        concat_duration=concat,
        target_duration=target,
        hold_duration=hold,
        held_frame_count=held_frames,
        hold_start_frame=hold_start,
    )

from __future__ import annotations
"""Story assembly request/result value objects.

Field names are camelCase on the wire (``targetDuration``, ``enableZoom``)
to match the story builder client.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class MusicTrack(_CamelModel):
    file: str
    volume: float = 1.0  # gain multiplier, passed through as given
    start_time: float | None = None  # seconds into the source
    end_time: float | None = None


class NarrationTrack(_CamelModel):
    file: str
    volume: float = 1.0
    enabled: bool = True


class AssemblyRequest(_CamelModel):
    """1–3 clips, one music bed, optional narration.

    The clip count is checked by the planner so that a bad request becomes
    an ``AssemblyResult`` error rather than a schema rejection.
    """

    videos: tuple[str, ...]
    music: MusicTrack
    narration: NarrationTrack | None = None
    output_name: str | None = None
    target_duration: float | None = None
    enable_zoom: bool = False
    enable_fade_out: bool = False

    @property
    def narration_enabled(self) -> bool:
        return bool(self.narration and self.narration.enabled and self.narration.file)


class AssemblyResult(_CamelModel):
    success: bool
    output_path: str = ""
    duration: float = 0.0
    catalog_id: str = ""
    error: str | None = None

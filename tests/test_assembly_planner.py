import pytest

from mediaforge.schemas.assembly import AssemblyRequest
from mediaforge.services.assembly_planner import (
    AssemblyValidationError,
    ResolvedInputs,
    build_plan,
    fmt,
    resolve_asset_path,
    resolve_inputs,
    zoom_factor,
    zoom_schedule,
)
from mediaforge.services.ffmpeg_service import MediaProbe


def make_request(**overrides):
    data = {
        "videos": ["/assets/catalog/videos/a.mp4"],
        "music": {"file": "/assets/catalog/music/bed.mp3"},
    }
    data.update(overrides)
    return AssemblyRequest.model_validate(data)


def make_resolved(durations=(3.0,), narration=None, size=(1280, 720)):
    return ResolvedInputs(
        videos=tuple(f"/data/v{i}.mp4" for i in range(len(durations))),
        video_durations=tuple(durations),
        width=size[0],
        height=size[1],
        music="/data/bed.mp3",
        narration=narration,
    )


def test_static_freeze_to_target():
    plan = build_plan(make_request(targetDuration=5), make_resolved((3.0,)), "/out/story.mp4")

    assert plan.hold_duration == pytest.approx(2.0)
    assert plan.expected_duration == 5
    assert plan.stage("extend").graph == "[vconcat]tpad=stop_mode=clone:stop_duration=2[v]"
    assert plan.output_options[-2:] == ("-t", "5")


def test_two_clips_music_only_without_target():
    request = make_request(
        videos=["/assets/a.mp4", "/assets/b.mp4"],
        music={"file": "/assets/bed.mp3", "volume": 0.5},
    )
    plan = build_plan(request, make_resolved((2.0, 2.0)), "/out/story.mp4")
    graph = plan.filter_complex()

    assert plan.expected_duration == pytest.approx(4.0)
    assert plan.hold_duration == 0
    assert "concat=n=2:v=1:a=0[vconcat]" in graph
    assert plan.stage("extend").graph == "[vconcat]null[v]"
    assert plan.stage("music").graph == "[2:a]volume=0.5[music]"
    assert plan.stage("narration").graph == "[music]anull[amix]"
    # Source clip audio never reaches the output
    assert "[0:a]" not in graph and "[1:a]" not in graph
    assert "-shortest" in plan.output_options
    assert "-t" not in plan.output_options


def test_plan_is_deterministic():
    request = make_request(
        videos=["/assets/a.mp4", "/assets/b.mp4", "/assets/c.mp4"],
        music={"file": "/assets/bed.mp3", "volume": 0.8, "startTime": 4, "endTime": 20},
        narration={"file": "/assets/voice.mp3", "volume": 1.0},
        targetDuration=12.5,
        enableZoom=True,
        enableFadeOut=True,
    )
    resolved = make_resolved((2.5, 3.0, 4.0), narration="/data/voice.mp3")

    first = build_plan(request, resolved, "/out/s.mp4")
    second = build_plan(request, resolved, "/out/s.mp4")

    assert first == second
    assert first.to_command() == second.to_command()


@pytest.mark.parametrize("durations,target", [((3.0,), 5.0), ((2.2, 1.3), 7.9), ((1.0, 1.0, 1.5), 3.6)])
def test_hold_duration_fills_gap_to_target(durations, target):
    plan = build_plan(make_request(videos=["/a"] * len(durations), targetDuration=target),
                      make_resolved(durations), "/out/s.mp4")

    assert plan.hold_duration == pytest.approx(target - sum(durations))


def test_zoom_schedule_runs_from_one_to_max():
    schedule = zoom_schedule(48)

    assert schedule[0] == 1.0
    assert schedule[-1] == pytest.approx(1.2)
    assert all(a <= b for a, b in zip(schedule, schedule[1:]))
    assert zoom_factor(500, 48) == 1.2


def test_zoom_freeze_plan():
    plan = build_plan(make_request(targetDuration=5, enableZoom=True), make_resolved((3.0,)), "/out/s.mp4", fps=24)
    extend = plan.stage("extend").graph

    assert plan.held_frame_count == 48
    assert plan.hold_start_frame == 71
    assert "tpad=stop_mode=clone:stop_duration=2" in extend
    assert "zoompan=z='if(lt(on,71),1,min(1+0.004167*(on-71),1.2))'" in extend
    assert "x='iw/2-(iw/zoom/2)'" in extend
    assert ":s=1280x720:fps=24[v]" in extend


def test_narration_is_mixed_with_shortest_duration():
    request = make_request(
        music={"file": "/assets/bed.mp3", "volume": 0.3},
        narration={"file": "/assets/voice.mp3", "volume": 0.9},
    )
    plan = build_plan(request, make_resolved(narration="/data/voice.mp3"), "/out/s.mp4")

    assert [i.path for i in plan.inputs] == ["/data/v0.mp4", "/data/bed.mp3", "/data/voice.mp3"]
    assert plan.stage("narration").graph == (
        "[2:a]volume=0.9[narr];[music][narr]amix=inputs=2:duration=shortest[amix]"
    )


def test_zero_and_negative_volumes_pass_through():
    plan = build_plan(make_request(music={"file": "/m.mp3", "volume": -0.5}), make_resolved(), "/o.mp4")
    assert plan.stage("music").graph == "[1:a]volume=-0.5[music]"

    plan = build_plan(make_request(music={"file": "/m.mp3", "volume": 0}), make_resolved(), "/o.mp4")
    assert plan.stage("music").graph == "[1:a]volume=0[music]"


def test_music_trim_is_applied_to_input():
    request = make_request(music={"file": "/m.mp3", "startTime": 3.5, "endTime": 10})
    plan = build_plan(request, make_resolved(), "/o.mp4")

    assert plan.inputs[1].options == ("-ss", "3.5", "-to", "10")
    command = plan.to_command("ffmpeg")
    assert command[command.index("/data/bed.mp3") - 5:command.index("/data/bed.mp3")] == [
        "-ss", "3.5", "-to", "10", "-i",
    ]


def test_fade_out_only_with_target_above_two_seconds():
    fade = build_plan(make_request(targetDuration=8, enableFadeOut=True), make_resolved(), "/o.mp4")
    assert fade.stage("fade").graph == "[amix]afade=t=out:st=6:d=2[a]"

    no_target = build_plan(make_request(enableFadeOut=True), make_resolved(), "/o.mp4")
    assert no_target.stage("fade").graph == "[amix]acopy[a]"

    short = build_plan(make_request(targetDuration=1.5, enableFadeOut=True), make_resolved((1.0,)), "/o.mp4")
    assert short.stage("fade").graph == "[amix]acopy[a]"


def test_target_shorter_than_clips_is_rejected():
    with pytest.raises(AssemblyValidationError, match="never truncates"):
        build_plan(make_request(targetDuration=2), make_resolved((3.0,)), "/o.mp4")


def test_target_equal_to_clips_needs_no_hold():
    plan = build_plan(make_request(targetDuration=3), make_resolved((3.0,)), "/o.mp4")

    assert plan.hold_duration == 0
    assert plan.stage("extend").graph == "[vconcat]null[v]"


def test_command_layout():
    command = build_plan(make_request(targetDuration=5), make_resolved(), "/out/s.mp4").to_command("/usr/bin/ffmpeg")

    assert command[:2] == ["/usr/bin/ffmpeg", "-y"]
    assert command[-1] == "/out/s.mp4"
    assert command[command.index("-filter_complex") + 1].endswith("[a]")
    assert command[command.index("-map") + 1] == "[v]"
    for flag in ("libx264", "yuv420p", "aac", "192k"):
        assert flag in command


def test_fmt():
    assert fmt(2.0) == "2"
    assert fmt(0.1 + 0.2) == "0.3"
    assert fmt(-0.0) == "0"


# ── resolution ──

def test_resolve_asset_path_strips_prefix(tmp_path):
    assert resolve_asset_path("/assets/catalog/videos/a.mp4", tmp_path) == (tmp_path / "catalog/videos/a.mp4").resolve()


def test_resolve_asset_path_rejects_escape(tmp_path):
    with pytest.raises(AssemblyValidationError):
        resolve_asset_path("/assets/../../etc/passwd", tmp_path)


def write_files(root, *names):
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"x")


def test_resolve_inputs_probes_clips(tmp_path):
    write_files(tmp_path, "v/a.mp4", "v/b.mp4", "m/bed.mp3")
    request = make_request(videos=["/assets/v/a.mp4", "v/b.mp4"], music={"file": "/assets/m/bed.mp3"})
    probes = {"a.mp4": MediaProbe(2.0, 640, 360), "b.mp4": MediaProbe(2.5, 1920, 1080)}

    resolved = resolve_inputs(request, tmp_path, lambda path: probes[path.rsplit("/", 1)[-1]])

    assert resolved.video_durations == (2.0, 2.5)
    assert resolved.concat_duration == pytest.approx(4.5)
    assert (resolved.width, resolved.height) == (640, 360)
    assert resolved.narration is None


def test_resolve_inputs_fails_fast_on_missing_file(tmp_path):
    write_files(tmp_path, "v/a.mp4")
    probed = []

    with pytest.raises(AssemblyValidationError, match="Music not found"):
        resolve_inputs(make_request(videos=["v/a.mp4"], music={"file": "m/none.mp3"}), tmp_path, probed.append)

    assert probed == []


def test_resolve_inputs_checks_enabled_narration_only(tmp_path):
    write_files(tmp_path, "v/a.mp4", "m/bed.mp3")
    probe = lambda path: MediaProbe(3.0)  # noqa: E731

    disabled = make_request(videos=["v/a.mp4"], music={"file": "m/bed.mp3"},
                            narration={"file": "n/none.mp3", "enabled": False})
    assert resolve_inputs(disabled, tmp_path, probe).narration is None

    enabled = make_request(videos=["v/a.mp4"], music={"file": "m/bed.mp3"}, narration={"file": "n/none.mp3"})
    with pytest.raises(AssemblyValidationError, match="Narration not found"):
        resolve_inputs(enabled, tmp_path, probe)


@pytest.mark.parametrize("count", [0, 4])
def test_clip_count_is_validated(tmp_path, count):
    with pytest.raises(AssemblyValidationError, match="Expected 1-3 videos"):
        resolve_inputs(make_request(videos=["v.mp4"] * count), tmp_path, lambda p: MediaProbe(1.0))

import io

from sinkhole.main import DEBUG_MARKER, _DebugSilencer, _params_from_args, _parse_args, main


def test_silencer_drops_debug_lines_only():
    sink = io.StringIO()
    stream = _DebugSilencer(sink, DEBUG_MARKER)
    stream.write("keep me\n")
    stream.write(f"{DEBUG_MARKER} pool sizes stream=3\n")
    stream.write("[Sinkhole][WARN] kept too\n")
    assert sink.getvalue() == "keep me\n[Sinkhole][WARN] kept too\n"


def test_silencer_joins_split_writes():
    sink = io.StringIO()
    stream = _DebugSilencer(sink, DEBUG_MARKER)
    stream.write("[Sinkhole]")
    stream.write("[DEBUG] resize\nvisible")
    assert sink.getvalue() == ""
    stream.flush()
    assert sink.getvalue() == "visible"


def test_args_map_to_scene_params():
    args = _parse_args(["--seed", "4", "--zoom", "0.5", "--with-spiral"])
    params = _params_from_args(args)
    assert params["system"] == {"debug": False, "seed": 4}
    assert params["camera"] == {"zoom": 0.5}
    assert params["particles"] == {"spiral": {"enabled": True}}


def test_headless_run_reports_pools(capsys):
    assert main(["--headless", "--debug", "--frames", "3", "--seed", "2", "--with-sink"]) == 0
    out = capsys.readouterr().out
    assert "[Sinkhole] 3 frames" in out
    assert "sink=" in out

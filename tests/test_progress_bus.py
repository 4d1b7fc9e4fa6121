import io
import logging

from core.progress import (
    CancelFlagObserver,
    LoggingProgressObserver,
    ProgressBus,
    ProgressEvent,
    StageProgressMapper,
    TerminalProgressObserver,
)


def test_progress_bus_stage_and_pipeline_callbacks():
    events = []
    bus = ProgressBus().subscribe(lambda e: events.append(e))

    bus.stage_callback("0:GD")(55, "dilating")
    bus.pipeline_callback()(20, "Running 0:GD")

    assert len(events) == 2
    assert isinstance(events[0], ProgressEvent)
    assert events[0].channel == "stage"
    assert events[0].stage == "0:GD"
    assert events[0].percent == 55
    assert events[1].channel == "pipeline"
    assert events[1].stage is None
    assert events[1].percent == 20


def test_percent_is_clamped():
    events = []
    bus = ProgressBus().subscribe(events.append)
    bus.stage_callback("x")(150, "over")
    bus.stage_callback("x")(-5, "under")
    assert [e.percent for e in events] == [100, 0]


def test_unsubscribe():
    events = []
    bus = ProgressBus()
    bus.subscribe(events.append)
    bus.unsubscribe(events.append)
    bus.stage_callback("x")(10, "ignored")
    assert events == []


def test_stage_progress_mapper():
    mapper = StageProgressMapper(["0:GD", "1:ME", "2:MaurerDistance", "3:Normalize"])
    assert mapper.map("0:GD", 50) == 12
    assert mapper.map("1:ME", 100) == 50
    assert mapper.map("3:Normalize", 100) == 100
    assert mapper.map("unknown", 40) == 40


def test_cancel_flag_observer_raises():
    bus = ProgressBus()
    bus.subscribe(CancelFlagObserver(lambda: True))
    cb = bus.stage_callback("0:PeronaMalik")

    raised = False
    try:
        cb(10, "iterating")
    except InterruptedError:
        raised = True

    assert raised


def test_logging_observer(caplog):
    bus = ProgressBus().subscribe(LoggingProgressObserver(logging.getLogger("test.progress")))
    with caplog.at_level(logging.DEBUG, logger="test.progress"):
        bus.stage_callback("0:GD")(50, "half way")
        bus.pipeline_callback()(100, "done")
    assert "[0:GD  50%] half way" in caplog.text
    assert "[pipeline 100%] done" in caplog.text


def test_terminal_observer_renders_bar():
    stream = io.StringIO()
    bus = ProgressBus().subscribe(TerminalProgressObserver(bar_width=10, stream=stream))
    bus.stage_callback("0:GD")(100, "complete")
    output = stream.getvalue()
    assert "[0:GD] [##########] 100%" in output
    assert output.endswith("\n")

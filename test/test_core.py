from pathlib import Path

import pytest

from smelt.core import Combinator, Composite, TaskError, parallel, series
from smelt.test_harness import RecordingTask, run_graph


def test_parallel_and_series_are_descriptions():
    log: list[str] = []
    a = RecordingTask('a', log)
    b = RecordingTask('b', log)
    node = series(a, parallel(b, name='inner'), name='outer')
    assert isinstance(node, Composite)
    assert node.combinator is Combinator.SERIES
    assert node.name == 'outer'
    assert node.children[1].combinator is Combinator.PARALLEL
    assert node.leaves() == [a, b]
    assert log == []


def test_series_runs_in_order():
    log: list[str] = []
    run_graph(series(
        RecordingTask('a', log, delay=0.02),
        RecordingTask('b', log),
        RecordingTask('c', log),
    ))
    assert log == ['start:a', 'end:a', 'start:b', 'end:b', 'start:c', 'end:c']


def test_series_waits_for_nested_children():
    log: list[str] = []
    run_graph(series(
        parallel(RecordingTask('a', log, delay=0.05), RecordingTask('b', log)),
        RecordingTask('c', log),
    ))
    assert log.index('start:c') > log.index('end:a')
    assert log.index('start:c') > log.index('end:b')


def test_parallel_runs_concurrently():
    log: list[str] = []
    run_graph(parallel(
        RecordingTask('slow', log, delay=0.05),
        RecordingTask('fast', log),
    ))
    assert log[:2] == ['start:slow', 'start:fast']
    assert log.index('end:fast') < log.index('end:slow')


def test_series_failure_stops_sequence():
    log: list[str] = []
    with pytest.raises(TaskError) as exc_info:
        run_graph(series(RecordingTask('a', log, fail=True), RecordingTask('b', log)))
    assert exc_info.value.task_name == 'a'
    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert 'start:b' not in log


def test_parallel_failure_still_finishes_siblings(tmp_path: Path):
    log: list[str] = []
    output = tmp_path / 'b.txt'
    with pytest.raises(TaskError) as exc_info:
        run_graph(parallel(
            RecordingTask('a', log, fail=True),
            RecordingTask('b', log, delay=0.05, output=output),
        ))
    assert exc_info.value.task_name == 'a'
    assert 'end:b' in log
    assert output.read_text('utf-8') == 'b'


def test_parallel_reports_first_failure_in_child_order():
    log: list[str] = []
    with pytest.raises(TaskError) as exc_info:
        run_graph(parallel(
            RecordingTask('a', log, delay=0.05, fail=True),
            RecordingTask('b', log, fail=True),
        ))
    assert exc_info.value.task_name == 'a'


def test_failure_inside_parallel_aborts_enclosing_series():
    log: list[str] = []
    with pytest.raises(TaskError):
        run_graph(series(
            parallel(RecordingTask('a', log), RecordingTask('b', log, fail=True)),
            RecordingTask('c', log),
        ))
    assert 'start:c' not in log


def test_task_timing_output(capsys: pytest.CaptureFixture):
    log: list[str] = []
    run_graph(RecordingTask('a', log))
    out = capsys.readouterr().out
    assert "Starting 'a'..." in out
    assert "Finished 'a' after" in out


def test_task_failure_output(capsys: pytest.CaptureFixture):
    log: list[str] = []
    with pytest.raises(TaskError):
        run_graph(RecordingTask('a', log, fail=True))
    assert "'a' errored after" in capsys.readouterr().err

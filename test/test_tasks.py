import shutil
import subprocess
import threading
from pathlib import Path

import pytest

from smelt.core import TaskError
from smelt.simple import TransformError, TransformUnavailableError
from smelt.dependencies import PipDependency
from smelt.tasks import CleanTask, FileTransformTask, LintTask
from smelt.test_harness import (
    FailingTransform, RecordingChannel, UpperTransform, list_tree, make_tree, run_graph
)


class UnavailableTransform(UpperTransform):
    @classmethod
    def get_dependencies(cls):
        return {PipDependency('smelt-no-such-package', check_name='smelt_no_such_package')}


def test_clean_removes_directories(tmp_path: Path):
    make_tree(tmp_path, {'dist/index.html': '', 'temp/a/b.css': '', 'keep.txt': ''})
    run_graph(CleanTask('clean', [tmp_path / 'dist', tmp_path / 'temp']))
    assert list_tree(tmp_path) == {'keep.txt'}


def test_clean_is_idempotent(tmp_path: Path):
    task = CleanTask('clean', [tmp_path / 'dist', tmp_path / 'temp'])
    run_graph(task)
    run_graph(task)
    assert not (tmp_path / 'dist').exists()


def test_transform_task_writes_outputs(tmp_path: Path):
    make_tree(tmp_path / 'src', {
        'assets/styles/main.scss': 'a {}',
        'assets/styles/other.txt': 'ignored',
    })
    channel = RecordingChannel()
    task = FileTransformTask(
        'style',
        'assets/styles/*.scss',
        tmp_path / 'src',
        tmp_path / 'temp',
        [UpperTransform('.css')],
        channel=channel
    )
    run_graph(task)
    assert (tmp_path / 'temp/assets/styles/main.css').read_text('utf-8') == 'A {}'
    assert list_tree(tmp_path / 'temp') == {'assets/styles/main.css'}
    assert channel.notifications == [['assets/styles/main.css']]


def test_transform_task_without_inputs(tmp_path: Path):
    channel = RecordingChannel()
    run_graph(FileTransformTask(
        'script', 'assets/scripts/*.js', tmp_path / 'src', tmp_path / 'temp', channel=channel
    ))
    assert (tmp_path / 'temp').is_dir()
    assert channel.notifications == []


def test_transform_task_scans_off_the_event_loop(tmp_path: Path):
    make_tree(tmp_path / 'src', {'assets/scripts/app.js': 'app()'})
    threads: list[int] = []

    class ThreadRecordingTask(FileTransformTask):
        def find_inputs(self):
            threads.append(threading.get_ident())
            return super().find_inputs()

    run_graph(ThreadRecordingTask('script', 'assets/scripts/*.js', tmp_path / 'src', tmp_path / 'temp'))
    assert threads and threads[0] != threading.get_ident()
    assert list_tree(tmp_path / 'temp') == {'assets/scripts/app.js'}


def test_transform_task_copies_without_transforms(tmp_path: Path):
    make_tree(tmp_path / 'public', {'robots.txt': 'User-agent: *', 'img/logo.png': b'\x89PNG'})
    run_graph(FileTransformTask('extra', '**', tmp_path / 'public', tmp_path / 'dist'))
    assert (tmp_path / 'dist/robots.txt').read_text('utf-8') == 'User-agent: *'
    assert (tmp_path / 'dist/img/logo.png').read_bytes() == b'\x89PNG'


def test_transform_task_fails_on_bad_input(tmp_path: Path):
    make_tree(tmp_path / 'src', {'assets/scripts/a.js': 'syntax error'})
    channel = RecordingChannel()
    task = FileTransformTask(
        'script',
        'assets/scripts/*.js',
        tmp_path / 'src',
        tmp_path / 'temp',
        [FailingTransform()],
        channel=channel
    )
    with pytest.raises(TaskError) as exc_info:
        run_graph(task)
    assert exc_info.value.task_name == 'script'
    assert isinstance(exc_info.value.__cause__, TransformError)
    assert exc_info.value.__cause__.source == tmp_path / 'src/assets/scripts/a.js'
    assert channel.notifications == []


def test_transform_task_reports_unavailable_transform(tmp_path: Path):
    make_tree(tmp_path / 'src', {'assets/scripts/a.js': 'x'})
    task = FileTransformTask(
        'script', 'assets/scripts/*.js', tmp_path / 'src', tmp_path / 'temp', [UnavailableTransform()]
    )
    with pytest.raises(TaskError) as exc_info:
        run_graph(task)
    assert isinstance(exc_info.value.__cause__, TransformUnavailableError)
    assert 'pip install smelt-no-such-package' in str(exc_info.value)


def test_transform_task_drops_none(tmp_path: Path):
    make_tree(tmp_path / 'src', {'a.txt': 'a', 'b.txt': 'b'})

    class DropA(UpperTransform):
        def __call__(self, asset):
            return None if asset.path.name == 'a.txt' else super().__call__(asset)

    run_graph(FileTransformTask('drop', '*.txt', tmp_path / 'src', tmp_path / 'out', [DropA()]))
    assert list_tree(tmp_path / 'out') == {'b.txt'}


@pytest.mark.skipif(shutil.which('sh') is None, reason='needs a POSIX shell')
def test_lint_task(tmp_path: Path):
    make_tree(tmp_path, {'a.js': '', 'b.js': ''})
    run_graph(LintTask('lint', '*.js', tmp_path, ['sh', '-c', 'test "$#" -eq 2', 'lint']))
    with pytest.raises(TaskError) as exc_info:
        run_graph(LintTask('lint', '*.js', tmp_path, ['sh', '-c', 'echo "$1: bad"; exit 3', 'lint']))
    assert 'exited with status 3' in str(exc_info.value)
    assert 'a.js: bad' in str(exc_info.value)


def test_lint_task_without_inputs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    def explode(*args, **kwargs):
        raise AssertionError('linter should not run')

    monkeypatch.setattr(subprocess, 'run', explode)
    run_graph(LintTask('lint', '*.js', tmp_path, ['false']))

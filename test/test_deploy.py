import shutil
import subprocess
from pathlib import Path

import pytest

from smelt.core import TaskError
from smelt.deploy import DeployError, GitPagesDeployer
from smelt.tasks import DeployTask
from smelt.test_harness import make_tree, run_graph


pytestmark = pytest.mark.skipif(shutil.which('git') is None, reason='git is not installed')


def git(*args: str, cwd: Path):
    return subprocess.run(
        ['git', *args], cwd=cwd, check=True, capture_output=True, text=True
    ).stdout.strip()


@pytest.fixture(autouse=True)
def git_identity(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.setenv('GIT_CONFIG_GLOBAL', str(tmp_path / 'gitconfig'))
    monkeypatch.setenv('GIT_CONFIG_NOSYSTEM', '1')
    for role in ('AUTHOR', 'COMMITTER'):
        monkeypatch.setenv(f'GIT_{role}_NAME', 'Site Builder')
        monkeypatch.setenv(f'GIT_{role}_EMAIL', 'builder@example.com')


@pytest.fixture
def project(tmp_path: Path):
    git('init', '--quiet', '--bare', 'remote.git', cwd=tmp_path)
    root = tmp_path / 'project'
    make_tree(root, {
        'dist/index.html': '<h1>home</h1>',
        'dist/assets/styles/site.css': 'a{}',
    })
    git('init', '--quiet', cwd=root)
    git('remote', 'add', 'origin', '../remote.git', cwd=root)
    return root


def published(tmp_path: Path, branch: str = 'gh-pages'):
    remote = tmp_path / 'remote.git'
    return set(git('ls-tree', '-r', '--name-only', branch, cwd=remote).splitlines())


def test_deploy(project: Path, tmp_path: Path):
    deployer = GitPagesDeployer(project)
    deployer(project / 'dist')
    assert published(tmp_path) == {'index.html', 'assets/styles/site.css'}
    assert git('log', '--format=%s', 'gh-pages', cwd=tmp_path / 'remote.git') == 'Update site'


def test_deploy_keeps_history(project: Path, tmp_path: Path):
    deployer = GitPagesDeployer(project, branch='pages', message='Publish')
    deployer(project / 'dist')
    (project / 'dist/index.html').unlink()
    deployer(project / 'dist')
    remote = tmp_path / 'remote.git'
    assert published(tmp_path, 'pages') == {'assets/styles/site.css'}
    assert git('rev-list', '--count', 'pages', cwd=remote) == '2'
    assert git('show', 'pages~1:index.html', cwd=remote) == '<h1>home</h1>'


def test_deploy_builds_on_existing_branch(project: Path, tmp_path: Path):
    existing = tmp_path / 'existing'
    make_tree(existing, {'CNAME': 'example.com'})
    git('init', '--quiet', cwd=existing)
    git('add', '--all', cwd=existing)
    git('commit', '--quiet', '--message', 'Hand-made page', cwd=existing)
    git('push', '--quiet', str(tmp_path / 'remote.git'), 'HEAD:refs/heads/gh-pages', cwd=existing)
    tip = git('rev-parse', 'HEAD', cwd=existing)

    GitPagesDeployer(project)(project / 'dist')

    remote = tmp_path / 'remote.git'
    assert git('rev-parse', 'gh-pages~1', cwd=remote) == tip
    assert published(tmp_path) == {'index.html', 'assets/styles/site.css'}


def test_deploy_force_replaces_history(project: Path, tmp_path: Path):
    deployer = GitPagesDeployer(project, branch='pages', force=True)
    deployer(project / 'dist')
    (project / 'dist/index.html').unlink()
    deployer(project / 'dist')
    assert published(tmp_path, 'pages') == {'assets/styles/site.css'}
    assert git('rev-list', '--count', 'pages', cwd=tmp_path / 'remote.git') == '1'


def test_deploy_missing_dist(project: Path):
    with pytest.raises(FileNotFoundError):
        GitPagesDeployer(project)(project / 'missing')


def test_deploy_unknown_remote(project: Path):
    with pytest.raises(DeployError, match='git remote failed'):
        GitPagesDeployer(project, remote='upstream')(project / 'dist')


def test_deploy_task(project: Path, tmp_path: Path):
    run_graph(DeployTask('upload', project / 'dist', GitPagesDeployer(project)))
    assert 'index.html' in published(tmp_path)

    with pytest.raises(TaskError) as exc_info:
        run_graph(DeployTask('upload', project / 'missing', GitPagesDeployer(project)))
    assert exc_info.value.task_name == 'upload'

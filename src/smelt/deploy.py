"""
Publishing a built site to a static hosting branch.
"""
from __future__ import annotations

import shutil
import subprocess
import tempfile
from pathlib import Path

from .dependencies import WebExecDependency
from .pretty_utils import print_with_style


class DeployError(Exception):
    """
    Exception raised when publishing fails, carrying the output of the failed
    command.
    """


class GitPagesDeployer:
    """
    Publish a directory as the sole content of a git branch, GitHub Pages
    style. The directory is committed in a throwaway repository on top of the
    current tip of @branch at the URL of @remote, as configured in the
    repository at @root, and pushed as a fast-forward. With @force, the
    commit starts a new history and replaces the branch instead.
    """
    encoding = 'utf-8'

    def __init__(self,
                 root: Path,
                 remote: str = 'origin',
                 branch: str = 'gh-pages',
                 message: str = 'Update site',
                 force: bool = False):
        self.root = root
        self.remote = remote
        self.branch = branch
        self.message = message
        self.force = force

    def __repr__(self):
        return f'{self.__class__.__name__}({self.remote!r}, {self.branch!r})'

    @classmethod
    def get_dependencies(cls):
        return {
            WebExecDependency('git', 'https://git-scm.com/downloads'),
        }

    def git(self, *args: str, cwd: Path):
        """
        Run a git command, returning its stripped stdout.
        """
        try:
            result = subprocess.run(
                ['git', *args],
                cwd=cwd,
                capture_output=True,
                check=True,
                text=True,
                encoding=self.encoding
            )
        except subprocess.CalledProcessError as e:
            raise DeployError(f'git {args[0]} failed: {e.stderr.strip()}') from e
        return result.stdout.strip()

    def remote_url(self):
        """
        Return the push URL of the configured remote. Local remotes given as
        relative paths are made absolute, since pushing happens elsewhere.
        """
        url = self.git('remote', 'get-url', self.remote, cwd=self.root)
        if (local := self.root / url).exists():
            return str(local.resolve())
        return url

    def __call__(self, dist_dir: Path):
        if not dist_dir.is_dir():
            raise FileNotFoundError(f'Nothing to deploy, {dist_dir} does not exist')
        url = self.remote_url()
        ref = f'refs/heads/{self.branch}'

        with tempfile.TemporaryDirectory() as temp_dir:
            work_dir = Path(temp_dir) / 'site'
            shutil.copytree(dist_dir, work_dir)
            self.git('init', '--quiet', cwd=work_dir)
            self.git('symbolic-ref', 'HEAD', ref, cwd=work_dir)
            if not self.force and self.git('ls-remote', '--heads', url, ref, cwd=work_dir):
                # The index stays empty, so the commit holds exactly the files in dist_dir.
                self.git('fetch', '--quiet', url, ref, cwd=work_dir)
                self.git('update-ref', ref, 'FETCH_HEAD', cwd=work_dir)
            self.git('add', '--all', cwd=work_dir)
            self.git('commit', '--quiet', '--allow-empty', '--message', self.message, cwd=work_dir)
            push = ['push', '--quiet', url, f'HEAD:{ref}']
            if self.force:
                push.insert(1, '--force')
            self.git(*push, cwd=work_dir)

        print_with_style(f'Published {dist_dir} to {self.remote}/{self.branch}', style='green')

import shutil
import subprocess
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest


@pytest.fixture(scope="session", autouse=True)
def isolate_home_config():
    """Point the settings directory at a throwaway location.

    Tests must never read or overwrite the user's real
    ``~/.gitpop/settings.json``. The directory is patched for the whole
    session and removed afterwards.
    """
    config_dir = Path(tempfile.mkdtemp(prefix="gitpop_settings_"))
    with patch("gitpop.config.loader._get_config_directory", return_value=config_dir):
        try:
            yield config_dir
        finally:
            shutil.rmtree(str(config_dir), ignore_errors=True)


@pytest.fixture(autouse=True)
def clean_settings(isolate_home_config, monkeypatch):
    """Start each test from default settings and without API key variables."""
    settings_file = isolate_home_config / "settings.json"
    if settings_file.exists():
        settings_file.unlink()
    for var in ("OPENAI_API_KEY", "GEMINI_API_KEY", "ANTHROPIC_API_KEY", "GITPOP_API_KEY"):
        monkeypatch.delenv(var, raising=False)
    yield


def _git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        check=True,
    )
    return result.stdout


@pytest.fixture
def git_repo(tmp_path):
    """A fresh repository with one commit holding ``a.py`` and ``b.py``."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init", "--quiet")
    _git(repo, "config", "user.email", "dev@example.com")
    _git(repo, "config", "user.name", "Dev")
    _git(repo, "config", "commit.gpgsign", "false")
    (repo / "a.py").write_text("print('a')\n")
    (repo / "b.py").write_text("print('b')\n")
    _git(repo, "add", "a.py", "b.py")
    _git(repo, "commit", "--quiet", "-m", "initial")
    return repo


@pytest.fixture
def git():
    """Run git in a repository and return its stdout."""
    return _git

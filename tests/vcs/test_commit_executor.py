import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from gitpop.vcs.commit_executor import (
    CommitFailedError,
    EmptyFileListError,
    EmptyMessageError,
    commit,
)
from gitpop.vcs.git_client import GitClient, GitError


class TestCommitExecutor(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()
        (self.root / ".git").mkdir()

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def test_blank_message_rejected(self) -> None:
        for message in ("", "   \n\t"):
            with self.assertRaises(EmptyMessageError):
                commit(self.root, message, ["a.py"])

    def test_empty_file_list_rejected(self) -> None:
        with self.assertRaises(EmptyFileListError):
            commit(self.root, "fix: x", [])

    def test_stages_then_commits_only_given_paths(self) -> None:
        with patch.object(GitClient, "stage_files") as stage, patch.object(GitClient, "commit") as git_commit:
            commit(self.root, "  feat: add a  \n", ["a.py", "a.py", "dir/c.py"])
        stage.assert_called_once_with(["a.py", "dir/c.py"])
        git_commit.assert_called_once_with("feat: add a", ["a.py", "dir/c.py"])

    def test_git_failure_is_commit_failed(self) -> None:
        with patch.object(GitClient, "stage_files"), patch.object(
            GitClient, "commit", side_effect=GitError("pre-commit hook failed")
        ):
            with self.assertRaises(CommitFailedError) as ctx:
                commit(self.root, "fix: x", ["a.py"])
        self.assertIn("pre-commit hook failed", str(ctx.exception))

    def test_outside_repository_is_commit_failed(self) -> None:
        with patch.object(GitClient, "find_repo_root", return_value=None):
            with self.assertRaises(CommitFailedError):
                commit(self.root, "fix: x", ["a.py"])


if __name__ == "__main__":
    unittest.main()

import unittest
from unittest.mock import Mock, patch

from click.testing import CliRunner

import gitpop.cli as cli
from gitpop import __version__
from gitpop.config.loader import ConfigError, load_settings
from gitpop.diff.diff_assembler import NoStagedChangesError
from gitpop.llm.base import ProviderKind, ProviderUnreachableError
from gitpop.vcs.commit_executor import CommitFailedError
from gitpop.vcs.git_client import ChangeKind, FileChange
from gitpop.vcs.status_reader import NotAGitRepositoryError, ScanFailedError


def _changes():
    return [FileChange("a.py", ChangeKind.MODIFIED), FileChange("b.py", ChangeKind.UNMERGED)]


class CliTestCase(unittest.TestCase):
    """Runs the CLI against a patched repository with ``a.py`` and ``b.py`` pending."""

    def setUp(self) -> None:
        self.runner = CliRunner()
        self.scan = self._start(patch("gitpop.staging.session.scan", return_value=_changes()))
        self.executor = self._start(patch("gitpop.vcs.commit_executor.commit"))
        self.build_diff = self._start(patch("gitpop.staging.session.build_diff", return_value="+x\n"))
        self.registry = Mock()
        self.registry.generate.return_value = "feat: add a"
        self._start(patch.object(cli, "ProviderRegistry", return_value=self.registry))

    def _start(self, patcher):
        mock = patcher.start()
        self.addCleanup(patcher.stop)
        return mock

    def invoke(self, *args, **kwargs):
        return self.runner.invoke(cli.main, ["--repo", "/repo", *args], **kwargs)


class TestStatusCommand(CliTestCase):
    def test_lists_changes(self) -> None:
        result = self.invoke("status")
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertIn("a.py", result.output)
        self.assertIn("b.py", result.output)

    def test_clean_tree(self) -> None:
        self.scan.return_value = []
        result = self.invoke("status")
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
        self.assertIn("Working tree clean", result.output)

    def test_not_a_repository(self) -> None:
        self.scan.side_effect = NotAGitRepositoryError("no repo")
        result = self.invoke("status")
        self.assertEqual(result.exit_code, cli.EXIT_NO_REPO)
        self.assertIn("git init", result.output)

    def test_scan_failure(self) -> None:
        self.scan.side_effect = ScanFailedError("index corrupt")
        result = self.invoke("status")
        self.assertEqual(result.exit_code, cli.EXIT_VCS_FAILURE)

    def test_verbose_logs_debug_messages(self) -> None:
        result = self.runner.invoke(cli.main, ["--verbose", "--repo", "/repo", "status"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertIn("DEBUG: Using directory: /repo", result.output)

    def test_debug_messages_hidden_without_verbose(self) -> None:
        result = self.invoke("status")
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertNotIn("Using directory", result.output)

    def test_invalid_settings(self) -> None:
        with patch.object(cli, "load_settings", side_effect=ConfigError("bad json")):
            result = self.invoke("status")
        self.assertEqual(result.exit_code, cli.EXIT_CONFIG_ERROR)

    def test_unexpected_error_is_generic(self) -> None:
        self.scan.side_effect = RuntimeError("kaboom")
        result = self.invoke("status")
        self.assertEqual(result.exit_code, cli.EXIT_GENERIC_ERROR)


class TestDiffAndGenerateCommands(CliTestCase):
    def test_diff_prints_selected_paths(self) -> None:
        result = self.invoke("diff", "a.py")
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertIn("+x", result.output)
        self.assertEqual(self.build_diff.call_args[0][1], ["a.py"])

    def test_diff_without_selection(self) -> None:
        self.build_diff.side_effect = NoStagedChangesError("nothing staged")
        result = self.invoke("diff")
        self.assertEqual(result.exit_code, cli.EXIT_NO_CHANGES)

    def test_unknown_path_is_usage_error(self) -> None:
        result = self.invoke("diff", "missing.py")
        self.assertEqual(result.exit_code, cli.EXIT_INVALID_USAGE)
        self.assertIn("missing.py", result.output)

    def test_generate_prints_message(self) -> None:
        result = self.invoke("generate", "--all")
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.assertIn("feat: add a", result.output)
        request = self.registry.generate.call_args[0][0]
        self.assertEqual(request.diff_text, "+x\n")
        self.assertEqual(request.provider_config.provider, ProviderKind.LOCAL)
        self.assertEqual(self.build_diff.call_args[0][1], ["a.py", "b.py"])

    def test_generate_with_local_server_down(self) -> None:
        self.registry.generate.side_effect = ProviderUnreachableError("connection refused")
        result = self.invoke("generate", "--all")
        self.assertEqual(result.exit_code, cli.EXIT_LLM_FAILURE)
        self.assertIn("ollama serve", result.output)


class TestCommitCommand(CliTestCase):
    def test_commit_with_message_and_yes(self) -> None:
        result = self.invoke("commit", "a.py", "-m", "fix: tweak a", "--yes")
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        self.executor.assert_called_once()
        _, message, paths = self.executor.call_args[0]
        self.assertEqual(message, "fix: tweak a")
        self.assertEqual(paths, ["a.py"])
        self.registry.generate.assert_not_called()

    def test_commit_yes_generates_message(self) -> None:
        result = self.invoke("commit", "--all", "--yes")
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        _, message, paths = self.executor.call_args[0]
        self.assertEqual(message, "feat: add a")
        self.assertEqual(paths, ["a.py", "b.py"])

    def test_yes_requires_a_selection(self) -> None:
        result = self.invoke("commit", "--yes")
        self.assertEqual(result.exit_code, cli.EXIT_INVALID_USAGE)
        self.executor.assert_not_called()

    def test_no_changes(self) -> None:
        self.scan.return_value = []
        result = self.invoke("commit", "--all", "--yes")
        self.assertEqual(result.exit_code, cli.EXIT_NO_CHANGES)

    def test_interactive_toggle_and_accept(self) -> None:
        result = self.invoke("commit", "-m", "fix: only a", input="1\n\na\n")
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        _, message, paths = self.executor.call_args[0]
        self.assertEqual(message, "fix: only a")
        self.assertEqual(paths, ["a.py"])

    def test_interactive_toggle_all_then_generate(self) -> None:
        result = self.invoke("commit", input="a\n\na\n")
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        _, message, paths = self.executor.call_args[0]
        self.assertEqual(message, "feat: add a")
        self.assertEqual(paths, ["a.py", "b.py"])

    def test_interactive_nothing_selected(self) -> None:
        result = self.invoke("commit", input="\n")
        self.assertEqual(result.exit_code, cli.EXIT_NO_CHANGES)
        self.executor.assert_not_called()

    def test_interactive_abort(self) -> None:
        result = self.invoke("commit", "-m", "fix: x", input="2\n\nq\n")
        self.assertEqual(result.exit_code, cli.EXIT_ABORTED)
        self.executor.assert_not_called()

    def test_commit_failure(self) -> None:
        self.executor.side_effect = CommitFailedError("hook rejected")
        result = self.invoke("commit", "--all", "-m", "fix: x", "--yes")
        self.assertEqual(result.exit_code, cli.EXIT_VCS_FAILURE)
        self.assertIn("hook rejected", result.output)


class TestConfigCommands(unittest.TestCase):
    def test_set_then_show_masks_key(self) -> None:
        runner = CliRunner()
        result = runner.invoke(
            cli.main,
            ["config", "set", "--provider", "anthropic", "--model", "claude-3-5-haiku-latest", "--api-key", "sk-ant-xyz"],
        )
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS, result.output)
        settings = load_settings()
        self.assertEqual(settings.provider, ProviderKind.CLAUDE)
        self.assertEqual(settings.api_key, "sk-ant-xyz")

        result = runner.invoke(cli.main, ["config", "show"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
        self.assertIn("anthropic", result.output)
        self.assertIn("configured", result.output)
        self.assertNotIn("sk-ant-xyz", result.output)

    def test_custom_provider_needs_base_url(self) -> None:
        result = CliRunner().invoke(cli.main, ["config", "set", "--provider", "custom"])
        self.assertEqual(result.exit_code, cli.EXIT_CONFIG_ERROR)

    def test_invalid_budget(self) -> None:
        result = CliRunner().invoke(cli.main, ["config", "set", "--budget", "0"])
        self.assertEqual(result.exit_code, cli.EXIT_CONFIG_ERROR)


class TestModelsCommand(unittest.TestCase):
    def test_lists_local_models(self) -> None:
        client = Mock()
        client.list_models.return_value = ["llama3.2", "qwen2.5-coder"]
        with patch.object(cli, "OllamaClient", return_value=client):
            result = CliRunner().invoke(cli.main, ["models"])
        self.assertEqual(result.exit_code, cli.EXIT_SUCCESS)
        self.assertIn("* llama3.2", result.output)
        self.assertIn("qwen2.5-coder", result.output)

    def test_server_down(self) -> None:
        client = Mock()
        client.list_models.side_effect = ProviderUnreachableError("refused")
        with patch.object(cli, "OllamaClient", return_value=client):
            result = CliRunner().invoke(cli.main, ["models"])
        self.assertEqual(result.exit_code, cli.EXIT_LLM_FAILURE)


class TestHelpers(unittest.TestCase):
    def test_resolve_startup_dir_strips_trailing_quote(self) -> None:
        self.assertEqual(cli.resolve_startup_dir('C:\\work\\repo\\"'), "C:\\work\\repo\\")
        self.assertEqual(cli.resolve_startup_dir("/work/repo"), "/work/repo")

    def test_resolve_startup_dir_defaults_to_cwd(self) -> None:
        with patch.object(cli.Path, "cwd", return_value=cli.Path("/somewhere")):
            self.assertEqual(cli.resolve_startup_dir(None), "/somewhere")

    def test_version(self) -> None:
        result = CliRunner().invoke(cli.main, ["--version"])
        self.assertEqual(result.exit_code, 0)
        self.assertIn(__version__, result.output)


def test_verbose_shows_git_commands(git_repo):
    (git_repo / "a.py").write_text("print('A')\n")
    result = CliRunner().invoke(cli.main, ["--verbose", "--repo", str(git_repo), "status"])
    assert result.exit_code == cli.EXIT_SUCCESS, result.output
    assert "Executing Git command: git status" in result.output
    assert "a.py" in result.output


if __name__ == "__main__":
    unittest.main()

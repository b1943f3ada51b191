"""
Command line interface for gitpop.

This module defines the ``main`` click group used as the entry point of
the ``gitpop`` command. Each subcommand opens a
:class:`~gitpop.staging.session.RepositorySession` for the chosen
directory, lets the user pick which changes to include, and drives diff
assembly, commit message generation and the commit itself. Every failure
family maps to its own exit code.
"""

from __future__ import annotations

import functools
import logging
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import click

from gitpop import __version__
from gitpop.config.loader import ConfigError, Settings, load_settings, parse_provider, save_settings
from gitpop.diff.diff_assembler import DiffFailedError, NoStagedChangesError
from gitpop.llm.base import DEFAULT_LOCAL_URL, GenerationError, ProviderKind, ProviderUnreachableError
from gitpop.llm.ollama_client import OllamaClient
from gitpop.llm.registry import ProviderRegistry
from gitpop.staging.session import RepositorySession, SessionState
from gitpop.vcs.commit_executor import CommitError
from gitpop.vcs.git_client import ChangeKind, FileChange
from gitpop.vcs.status_reader import ScanFailedError

# Create a module-level logger. Attach a null handler so nothing is
# printed until the CLI configures the root logger; records then
# propagate to its handlers.
logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_INVALID_USAGE = 2
EXIT_NO_REPO = 3
EXIT_NO_CHANGES = 4
EXIT_CONFIG_ERROR = 5
EXIT_VCS_FAILURE = 6
EXIT_LLM_FAILURE = 7
EXIT_ABORTED = 8


# ---------------------------------------------------------------------------
# Progress and status display utilities
# ---------------------------------------------------------------------------

class ProgressIndicator:
    """Simple progress indicator for user feedback.

    Written to stderr so that command output such as a generated message
    can be piped.
    """

    def __init__(self, message: str):
        self.message = message
        self.start_time = 0.0

    def __enter__(self):
        self.start_time = time.time()
        click.echo(f"⠋ {self.message}...", nl=False, err=True)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.time() - self.start_time
        mark = "✓" if exc_type is None else "✗"
        click.echo(f"\r{mark} {self.message} (took {elapsed:.1f}s)", err=True)
        return False


def print_info(message: str, indent: int = 0):
    """Print an info message."""
    prefix = "  " * indent
    click.echo(f"{prefix}ℹ {message}")


def print_success(message: str, indent: int = 0):
    """Print a success message."""
    prefix = "  " * indent
    click.echo(f"{prefix}✓ {message}")


def print_warning(message: str, indent: int = 0):
    """Print a warning message."""
    prefix = "  " * indent
    click.echo(f"{prefix}⚠ {message}")


def print_error(message: str, indent: int = 0):
    """Print an error message."""
    prefix = "  " * indent
    click.echo(f"{prefix}✗ {message}", err=True)


_KIND_COLORS = {
    ChangeKind.MODIFIED: "yellow",
    ChangeKind.ADDED: "green",
    ChangeKind.DELETED: "red",
    ChangeKind.UNMERGED: "magenta",
}


def print_changes(changes: Sequence[FileChange], show_staged: bool = False):
    """Print a numbered list of changes."""
    for idx, change in enumerate(changes, start=1):
        kind = click.style(change.kind.value, fg=_KIND_COLORS[change.kind], bold=True)
        box = ("[x] " if change.staged else "[ ] ") if show_staged else ""
        click.echo(f"  {idx:>3}  {box}{kind}  {change.path}")


def print_message_box(message: str):
    click.echo("   ┌" + "─" * 56 + "┐")
    for line in message.splitlines():
        display_line = line[:54]
        click.echo(f"   │ {display_line.ljust(54)} │")
    click.echo("   └" + "─" * 56 + "┘")


# ---------------------------------------------------------------------------
# Core functionality
# ---------------------------------------------------------------------------

def resolve_startup_dir(arg: Optional[str]) -> str:
    """Return the directory to open: ``arg`` when given, else the current directory.

    Windows shell integration can leave a dangling double quote at the end
    of a quoted directory argument ending in a backslash; it is dropped.
    """
    if arg:
        return arg[:-1] if arg.endswith('"') else arg
    return str(Path.cwd())


def handle_unexpected_errors(func: Callable) -> Callable:
    """Turn unexpected exceptions into a logged error and ``EXIT_GENERIC_ERROR``."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.exceptions.Exit:
            # Click uses its own Exit exception; re-raise to let Click handle it
            raise
        except (click.ClickException, click.exceptions.Abort):
            raise
        except Exception as exc:
            logging.exception("Unhandled error: %s", exc)
            print_error(f"Unexpected error: {exc}")
            raise click.exceptions.Exit(EXIT_GENERIC_ERROR)

    return wrapper


def load_settings_or_exit() -> Settings:
    try:
        return load_settings()
    except ConfigError as exc:
        print_error(f"Configuration error: {exc}")
        raise click.exceptions.Exit(EXIT_CONFIG_ERROR)


def open_session(repo_path: str, settings: Settings) -> RepositorySession:
    """Create a session for ``repo_path`` and scan it, exiting if it is not usable."""
    session = RepositorySession(repo_path, diff_char_budget=settings.diff_char_budget)
    try:
        session.refresh()
    except ScanFailedError as exc:
        print_error(f"Could not read repository status: {exc}")
        raise click.exceptions.Exit(EXIT_VCS_FAILURE)

    if session.state is SessionState.NOT_A_REPOSITORY:
        print_error(f"{repo_path} is not inside a Git repository.")
        print_info("Run 'git init' there to create one, or pass --repo with a repository path.", indent=1)
        raise click.exceptions.Exit(EXIT_NO_REPO)
    return session


def select_paths(session: RepositorySession, paths: Sequence[str], select_all: bool) -> None:
    """Stage ``paths`` (or everything) in the session's ledger."""
    if select_all:
        session.toggle_all()
        return
    known = {change.path for change in session.changes}
    unknown = [path for path in paths if path not in known]
    if unknown:
        for path in unknown:
            print_error(f"Not a pending change: {path}")
        print_info("Paths are relative to the repository root, as shown by 'gitpop status'.", indent=1)
        raise click.exceptions.Exit(EXIT_INVALID_USAGE)
    for path in dict.fromkeys(paths):
        session.toggle(path)


def interactive_staging(session: RepositorySession) -> None:
    """Let the user toggle changes by number until they press Enter."""
    while True:
        changes = session.changes
        click.echo("")
        print_changes(changes, show_staged=True)
        answer = click.prompt(
            "\n   Toggle by number (space separated), 'a' = all/none, Enter = done",
            default="",
            show_default=False,
        ).strip().lower()
        if not answer:
            return
        if answer in {"a", "all"}:
            session.toggle_all()
            continue
        for token in answer.replace(",", " ").split():
            if token.isdigit() and 1 <= int(token) <= len(changes):
                session.toggle(changes[int(token) - 1].path)
            else:
                print_warning(f"Ignoring '{token}'")


def report_generation_error(exc: GenerationError, settings: Settings) -> None:
    print_error(f"Could not generate a commit message: {exc}")
    if isinstance(exc, ProviderUnreachableError) and settings.provider is ProviderKind.LOCAL:
        print_info("Make sure Ollama is running ('ollama serve') and the model is pulled.", indent=1)


def generate_or_exit(session: RepositorySession, settings: Settings, registry: ProviderRegistry) -> str:
    try:
        with ProgressIndicator(f"Generating commit message with {settings.provider.label}"):
            return session.generate_message(registry, settings.provider_config())
    except NoStagedChangesError as exc:
        print_warning(str(exc))
        raise click.exceptions.Exit(EXIT_NO_CHANGES)
    except DiffFailedError as exc:
        print_error(f"Could not build the diff: {exc}")
        raise click.exceptions.Exit(EXIT_VCS_FAILURE)
    except GenerationError as exc:
        report_generation_error(exc, settings)
        raise click.exceptions.Exit(EXIT_LLM_FAILURE)


def review_message(message: str) -> Optional[str]:
    """Ask the user to accept, edit or abort ``message``.

    Returns
    -------
    Optional[str]
        The message to commit, or ``None`` if the user aborted.
    """
    click.echo("\n💬 Proposed commit message:")
    print_message_box(message)
    while True:
        choice = click.prompt(
            "   Choose action",
            type=click.Choice(["A", "E", "Q", "a", "e", "q"], case_sensitive=False),
            default="A",
            show_choices=True,
            show_default=True,
        ).strip().lower()

        if choice == "a":
            return message
        if choice == "q":
            return None

        try:
            edited = click.edit(message)
        except click.ClickException as exc:
            print_warning(f"Editor failed: {exc}")
            click.echo("   Enter your commit message below. End with a line containing only a period (.)")
            lines: List[str] = []
            while True:
                line = click.prompt("   ", default="", show_default=False)
                if line.strip() == ".":
                    break
                lines.append(line)
            edited = "\n".join(lines)

        if edited and edited.strip():
            message = edited.strip()
            print_success("Message edited")
            print_message_box(message)
        else:
            print_warning("Empty message, keeping the previous one")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@click.group()
@click.option("--repo", "-C", "repo", type=str, default=None,
              help="Directory inside the repository (defaults to the current directory).")
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.version_option(version=__version__, prog_name="gitpop")
@click.pass_context
def main(ctx: click.Context, repo: Optional[str], verbose: bool) -> None:
    """✨ Commit a chosen subset of your changes with an AI-written message."""
    # Configure logging. Use force=True to ensure handlers are reconfigured
    # on subsequent invocations (important for tests).
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        force=True,
    )
    ctx.obj = resolve_startup_dir(repo)
    logger.debug("Using directory: %s", ctx.obj)


@main.command()
@click.pass_obj
@handle_unexpected_errors
def status(repo_path: str) -> None:
    """List pending changes (M modified, A added, D deleted, U untracked/conflicted)."""
    settings = load_settings_or_exit()
    session = open_session(repo_path, settings)
    if not session.changes:
        print_success("Working tree clean")
        return
    print_changes(session.changes)


@main.command()
@click.argument("paths", nargs=-1)
@click.option("--all", "select_all", is_flag=True, help="Include every pending change.")
@click.pass_obj
@handle_unexpected_errors
def diff(repo_path: str, paths: Sequence[str], select_all: bool) -> None:
    """Show the diff that would be sent to the AI for PATHS."""
    settings = load_settings_or_exit()
    session = open_session(repo_path, settings)
    select_paths(session, paths, select_all)
    try:
        text = session.build_diff()
    except NoStagedChangesError as exc:
        print_warning(str(exc))
        raise click.exceptions.Exit(EXIT_NO_CHANGES)
    except DiffFailedError as exc:
        print_error(f"Could not build the diff: {exc}")
        raise click.exceptions.Exit(EXIT_VCS_FAILURE)
    click.echo(text, nl=False)


@main.command()
@click.argument("paths", nargs=-1)
@click.option("--all", "select_all", is_flag=True, help="Include every pending change.")
@click.pass_obj
@handle_unexpected_errors
def generate(repo_path: str, paths: Sequence[str], select_all: bool) -> None:
    """Generate a commit message for PATHS without committing."""
    settings = load_settings_or_exit()
    session = open_session(repo_path, settings)
    select_paths(session, paths, select_all)
    message = generate_or_exit(session, settings, ProviderRegistry())
    click.echo(message)


@main.command()
@click.argument("paths", nargs=-1)
@click.option("--all", "select_all", is_flag=True, help="Include every pending change.")
@click.option("-m", "--message", default=None, help="Commit message. Generated when omitted.")
@click.option("--yes", "yes", is_flag=True, help="Commit without asking for confirmation.")
@click.pass_obj
@handle_unexpected_errors
def commit(repo_path: str, paths: Sequence[str], select_all: bool, message: Optional[str], yes: bool) -> None:
    """Commit PATHS (or an interactively chosen set) with MESSAGE or a generated one."""
    settings = load_settings_or_exit()
    session = open_session(repo_path, settings)
    if not session.changes:
        print_warning("No changes detected to commit.")
        raise click.exceptions.Exit(EXIT_NO_CHANGES)

    if paths or select_all:
        select_paths(session, paths, select_all)
    elif yes:
        print_error("--yes needs PATHS or --all")
        raise click.exceptions.Exit(EXIT_INVALID_USAGE)
    else:
        interactive_staging(session)

    staged = session.staged_paths()
    if not staged:
        print_warning("Nothing selected; no changes committed.")
        raise click.exceptions.Exit(EXIT_NO_CHANGES)

    registry = ProviderRegistry()
    final_message = (message or "").strip()
    try:
        if not final_message and yes:
            # Generation happens inside the session, on the same staged set
            with ProgressIndicator(f"Generating message and committing {len(staged)} file(s)"):
                final_message = session.commit("", registry, settings.provider_config())
        else:
            if not final_message:
                final_message = generate_or_exit(session, settings, registry)
            if not yes:
                reviewed = review_message(final_message)
                if reviewed is None:
                    print_warning("Commit aborted; no changes committed.")
                    raise click.exceptions.Exit(EXIT_ABORTED)
                final_message = reviewed
            with ProgressIndicator(f"Committing {len(staged)} file(s)"):
                session.commit(final_message)
    except CommitError as exc:
        print_error(f"Commit failed: {exc}")
        raise click.exceptions.Exit(EXIT_VCS_FAILURE)
    except DiffFailedError as exc:
        print_error(f"Could not build the diff: {exc}")
        raise click.exceptions.Exit(EXIT_VCS_FAILURE)
    except GenerationError as exc:
        report_generation_error(exc, settings)
        raise click.exceptions.Exit(EXIT_LLM_FAILURE)

    print_success(f"Committed {len(staged)} file{'s' if len(staged) != 1 else ''}: {final_message.splitlines()[0]}")
    if session.changes:
        print_info(f"{len(session.changes)} change(s) still pending:")
        print_changes(session.changes)
    else:
        print_success("Working tree clean")


@main.group()
def config() -> None:
    """Show or change the AI provider settings."""


@config.command("show")
@handle_unexpected_errors
def config_show() -> None:
    """Print the current settings. The API key itself is never shown."""
    settings = load_settings_or_exit()
    click.echo(f"provider:         {settings.provider.value} ({settings.provider.label})")
    click.echo(f"model:            {settings.model}")
    click.echo(f"base_url:         {settings.base_url or '(default)'}")
    click.echo(f"api_key:          {'configured' if settings.credential() else 'not set'}")
    click.echo(f"request_timeout:  {settings.request_timeout:g}s")
    click.echo(f"diff_char_budget: {settings.diff_char_budget}")


@config.command("set")
@click.option("--provider", type=click.Choice([kind.value for kind in ProviderKind]), default=None)
@click.option("--model", default=None)
@click.option("--api-key", "api_key", default=None, help="Stored in the settings file.")
@click.option("--clear-api-key", is_flag=True, help="Remove the stored API key.")
@click.option("--base-url", "base_url", default=None, help="Endpoint for the openai, custom or ollama providers.")
@click.option("--timeout", "request_timeout", type=float, default=None, help="Request timeout in seconds.")
@click.option("--budget", "diff_char_budget", type=int, default=None, help="Diff character budget.")
@handle_unexpected_errors
def config_set(
    provider: Optional[str],
    model: Optional[str],
    api_key: Optional[str],
    clear_api_key: bool,
    base_url: Optional[str],
    request_timeout: Optional[float],
    diff_char_budget: Optional[int],
) -> None:
    """Update and save settings."""
    settings = load_settings_or_exit()
    if provider is not None:
        settings.provider = parse_provider(provider)
    if model is not None:
        settings.model = model
    if clear_api_key:
        settings.api_key = None
    elif api_key is not None:
        settings.api_key = api_key
    if base_url is not None:
        settings.base_url = base_url or None
    if request_timeout is not None:
        settings.request_timeout = request_timeout
    if diff_char_budget is not None:
        settings.diff_char_budget = diff_char_budget
    try:
        path = save_settings(settings)
    except ConfigError as exc:
        print_error(f"Configuration error: {exc}")
        raise click.exceptions.Exit(EXIT_CONFIG_ERROR)
    print_success(f"Settings saved to {path}")


@main.command()
@handle_unexpected_errors
def models() -> None:
    """List the models installed in the local Ollama server."""
    settings = load_settings_or_exit()
    base_url = settings.base_url if settings.provider is ProviderKind.LOCAL and settings.base_url else DEFAULT_LOCAL_URL
    client = OllamaClient(model=settings.model, base_url=base_url, request_timeout=settings.request_timeout)
    try:
        names = client.list_models()
    except GenerationError as exc:
        print_error(f"Could not list local models: {exc}")
        print_info("Make sure Ollama is running ('ollama serve').", indent=1)
        raise click.exceptions.Exit(EXIT_LLM_FAILURE)
    if not names:
        print_warning("No models installed. Pull one with 'ollama pull llama3.2'.")
        return
    for name in names:
        marker = "*" if name == settings.model else " "
        click.echo(f" {marker} {name}")

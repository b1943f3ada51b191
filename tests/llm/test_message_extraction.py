"""Tests for commit message extraction from raw model replies."""

import unittest

from gitpop.llm.base import MalformedResponseError
from gitpop.llm.commit_message_generator import (
    extract_commit_message,
    strip_code_fences,
    strip_thinking_tags,
)


class TestExtractCommitMessage(unittest.TestCase):
    """Replies with preambles, fences, tags and commentary reduce to the message."""

    def test_plain_message_is_unchanged(self):
        raw = "feat(auth): add login endpoint\n\nAdds a POST /login handler."
        self.assertEqual(extract_commit_message(raw), raw)

    def test_extract_message_with_preamble(self):
        """Reasoning before the message is dropped."""
        raw = """Let me analyze the changes. Looking at the diff, I can see that a new feature was added.
Here's the commit message:

[feat]: add user authentication system

This change implements login, logout and session management.

- src/auth/login.py"""
        message = extract_commit_message(raw)
        self.assertTrue(message.startswith("feat: add user authentication system"))
        self.assertNotIn("Let me analyze", message)
        self.assertNotIn("Here's the", message)
        self.assertIn("session management", message)

    def test_code_fence_is_removed(self):
        raw = "```text\nfix(parser): handle empty input\n```"
        self.assertEqual(extract_commit_message(raw), "fix(parser): handle empty input")

    def test_thinking_tags_are_removed(self):
        raw = "<think>The diff touches the README only.</think>\ndocs: describe install steps"
        self.assertEqual(extract_commit_message(raw), "docs: describe install steps")

    def test_quoted_single_line(self):
        self.assertEqual(extract_commit_message('"fix: correct typo in help"'), "fix: correct typo in help")
        self.assertEqual(extract_commit_message("`chore: bump deps`"), "chore: bump deps")

    def test_bold_header(self):
        self.assertEqual(extract_commit_message("**refactor: split cli module**"), "refactor: split cli module")

    def test_breaking_change_marker_is_kept(self):
        self.assertEqual(extract_commit_message("feat(api)!: drop v1 routes"), "feat(api)!: drop v1 routes")

    def test_trailing_commentary_is_dropped(self):
        raw = (
            "perf: cache parsed settings\n\n"
            "Avoids re-reading the file on every call.\n\n"
            "This commit message follows the Conventional Commits format."
        )
        self.assertEqual(
            extract_commit_message(raw),
            "perf: cache parsed settings\n\nAvoids re-reading the file on every call.",
        )

    def test_message_without_header_skips_preamble(self):
        raw = "Here is the commit message:\nUpdate dependency pins"
        self.assertEqual(extract_commit_message(raw), "Update dependency pins")

    def test_empty_reply_is_malformed(self):
        for raw in ("", "   \n", "<think>only thoughts</think>", "```\n```"):
            with self.assertRaises(MalformedResponseError, msg=repr(raw)):
                extract_commit_message(raw)


class TestHelpers(unittest.TestCase):
    def test_strip_thinking_tags_variants(self):
        self.assertEqual(strip_thinking_tags("<thinking>a</thinking>\n\nReal"), "Real")
        self.assertEqual(strip_thinking_tags("<THOUGHT>x</THOUGHT>Answer"), "Answer")
        self.assertEqual(strip_thinking_tags("<reasoning>\nmulti\nline\n</reasoning>ok"), "ok")
        self.assertEqual(strip_thinking_tags("no tags"), "no tags")

    def test_strip_code_fences_without_closing_fence(self):
        self.assertEqual(strip_code_fences("```\nfeat: x"), "feat: x")


if __name__ == "__main__":
    unittest.main()

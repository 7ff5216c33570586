"""Claude CLI implementation of IssueFetcher.

Asks the ``claude`` CLI (with the Atlassian MCP server configured) to search
Jira and reply with a JSON array of issues. The reply is free text, so the
array is extracted from a markdown code block or from the first ``[`` to the
last ``]``.

Requirements:
    - ``claude`` on PATH (or CLAUDE_COMMAND pointing at it)
    - Atlassian MCP server configured for the CLI

Error mapping:
- CLI missing or exiting non-zero -> upstream_unavailable
- ``is_error`` reply or unparsable output -> upstream_rejected
- no reply within the timeout -> timeout
"""

import asyncio
import json
import logging

from pydantic import ValidationError

from ticket_cache.config import settings
from ticket_cache.entities import IssueQuery
from ticket_cache.errors import FetchError
from ticket_cache.models import JiraIssue, JiraIssuesResponse

logger = logging.getLogger(__name__)

# Truncation for raw upstream text quoted in error details
PREVIEW_CHARS = 500

PROMPT_TEMPLATE = (
    "Use the Atlassian MCP search tool to find {subject} Jira issues that are not "
    "resolved. For each issue found, also fetch the full issue details to get the "
    "description. Return ONLY a valid JSON array (no markdown, no explanation) with "
    'objects containing these exact keys: "key", "summary", "status", "url", '
    '"description". The url should be the full Jira issue URL.'
)


def build_prompt(query: IssueQuery) -> str:
    """Build the CLI prompt for a query."""
    subject = "my assigned" if query.user == "me" else f"the {query.user!r} user's assigned"
    return PROMPT_TEMPLATE.format(subject=subject)


def extract_json_array(text: str) -> str | None:
    """Extract a JSON array from text that may wrap it in markdown.

    Tries a ```json block, then a plain ``` block starting with ``[``, then the
    span from the first ``[`` to the last ``]``.

    Returns:
        The array text, or None if nothing array-shaped was found
    """
    start = text.find("```json")
    if start != -1:
        body = text[start + len("```json"):]
        end = body.find("```")
        if end != -1:
            return body[:end].strip()

    start = text.find("```\n[")
    if start != -1:
        body = text[start + len("```\n"):]
        end = body.find("```")
        if end != -1:
            return body[:end].strip()

    start = text.find("[")
    end = text.rfind("]")
    if start != -1 and end > start:
        return text[start:end + 1]

    return None


def parse_cli_output(stdout: str) -> JiraIssuesResponse:
    """Parse the CLI's ``--output-format json`` reply into issues.

    Raises:
        FetchError: upstream_rejected if the reply is an error or unparsable
    """
    try:
        reply = json.loads(stdout)
        result = reply["result"]
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        raise FetchError.rejected(
            f"Failed to parse Claude response: {e}. Raw: {stdout[:PREVIEW_CHARS]}"
        ) from e

    if reply.get("is_error", False):
        raise FetchError.rejected(f"Claude returned an error: {result}")

    array_text = extract_json_array(result)
    if array_text is None:
        raise FetchError.rejected(
            f"Could not find JSON array in response: {result[:PREVIEW_CHARS]}"
        )

    try:
        raw_issues = json.loads(array_text)
        issues = [JiraIssue.model_validate(raw) for raw in raw_issues]
    except (json.JSONDecodeError, TypeError, ValidationError) as e:
        raise FetchError.rejected(
            f"Failed to parse issues JSON: {e}. JSON: {array_text[:PREVIEW_CHARS]}"
        ) from e

    return JiraIssuesResponse.from_issues(issues)


class ClaudeIssueFetcher:
    """Claude CLI implementation of the IssueFetcher protocol.

    Example:
        ```python
        fetcher = ClaudeIssueFetcher.create()
        payload = await fetcher.fetch(IssueQuery(user="me"))
        ```
    """

    def __init__(
        self,
        command: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            command: CLI executable. Defaults to settings.claude_command.
            model: Model passed to the CLI. Defaults to settings.claude_model.
            timeout: Seconds before the CLI is killed. Defaults to settings.
        """
        self._command = command or settings.claude_command
        self._model = model or settings.claude_model
        self._timeout = timeout or settings.claude_timeout

    @classmethod
    def create(
        cls,
        command: str | None = None,
        model: str | None = None,
    ) -> "ClaudeIssueFetcher":
        """Factory method to create ClaudeIssueFetcher with defaults."""
        return cls(command=command, model=model)

    @property
    def name(self) -> str:
        return f"claude-cli:{self._model}"

    @property
    def timeout(self) -> float:
        return self._timeout

    async def fetch(self, query: IssueQuery) -> str:
        """Run the CLI once and return the serialized issue list.

        Raises:
            FetchError: See module docstring for the kind mapping
        """
        args = [
            "-p",
            "--permission-mode",
            "bypassPermissions",
            "--output-format",
            "json",
            "--model",
            self._model,
            build_prompt(query),
        ]

        try:
            process = await asyncio.create_subprocess_exec(
                self._command,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise FetchError.unavailable(f"Failed to run {self._command} command: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), self._timeout)
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            logger.error("Jira fetch timed out after %s seconds", self._timeout)
            raise FetchError.timeout(self._timeout) from e

        if process.returncode != 0:
            raise FetchError.unavailable(
                f"Claude command failed: {stderr.decode(errors='replace').strip()}"
            )

        text = stdout.decode(errors="replace")
        logger.debug("Claude response: %s", text)

        response = parse_cli_output(text)
        logger.info("Fetched %d Jira issues for %s via Claude MCP", response.total, query.user)
        return response.model_dump_json()

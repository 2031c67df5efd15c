"""Prompt text for fix requests."""

from collections.abc import Sequence

from archline.core.result import ErrorRecord
from archline.deploy.context import RelevantFile
from archline.state.attempt import Attempt
from archline.state.registry import RegisteredFix

OUTPUT_FORMAT = """\
IMPORTANT: Format your response as a JSON object with the following structure:
{
  "summary": "Brief explanation of what changes you made and why they should fix the issue",
  "files": [
    {
      "filename": "relative/path/to/file.ts",
      "content": "// The complete corrected file content here..."
    }
  ]
}

The summary should be a concise explanation in plain English that describes what was changed and why.
Only include files that need to be changed, each with its complete content.
DO NOT provide additional explanations outside of the JSON structure."""

DIFFERENT_APPROACH = (
    "IMPORTANT: Previous approaches did NOT resolve the issue, "
    "so please try a different approach."
)


def render_diagram(diagram: str | None) -> str:
    if not diagram:
        return "Note: The original PlantUML diagram is not available."
    return (
        "The original PlantUML diagram that was used to generate this "
        f"CDK project is:\n\n```\n{diagram}\n```"
    )


def render_history(history: Sequence[Attempt]) -> str:
    """Summarize earlier attempts so the model does not repeat them."""
    if not history:
        return ""
    lines = ["Previous fix attempts:"]
    for attempt in history:
        files = ", ".join(attempt.filenames) or "none"
        lines.append(
            f"\nAttempt {attempt.attempt}:\n"
            f"- Error: {attempt.error.snippet}\n"
            f"- Summary: {attempt.summary or 'No summary available'}\n"
            f"- Files modified: {files}"
        )
        if attempt.fix_error:
            lines.append(f"- Fix step failed: {attempt.fix_error}")
    lines.append(f"\n{DIFFERENT_APPROACH}")
    return "\n".join(lines)


def render_known_fixes(fixes: Sequence[RegisteredFix]) -> str:
    if not fixes:
        return ""
    lines = ["Fixes that resolved a similar error in earlier deployments:"]
    for fix in fixes:
        files = ", ".join(fix.files) or "none"
        lines.append(f"- {fix.error_pattern}: {fix.summary} (files: {files})")
    return "\n".join(lines)


def render_files(files: Sequence[RelevantFile]) -> str:
    if not files:
        return "(No project files could be identified from the error.)"
    return "\n\n".join(
        f"```typescript\n// {f.path}\n{f.content}\n```" for f in files
    )


def build_fix_prompt(
    error: ErrorRecord,
    files: Sequence[RelevantFile],
    history: Sequence[Attempt] = (),
    diagram: str | None = None,
    known_fixes: Sequence[RegisteredFix] = (),
) -> str:
    """Compose the single user prompt sent for a fix.

    Args:
        error: Output of the failed deploy
        files: Project files related to the error
        history: Earlier attempts in this run
        diagram: Architecture diagram the project came from
        known_fixes: Registry entries for the same error

    Returns:
        Prompt text
    """
    sections = [
        "I'm trying to deploy an AWS CDK project but encountering errors. "
        "I need you to fix the code in the affected files.",
        render_diagram(diagram),
        render_history(history),
        render_known_fixes(known_fixes),
        "Here are the files that appear to be related to the errors:",
        render_files(files),
        f"The deployment error is:\n\n```\n{error.text}\n```",
        "Please identify the issues and provide corrected versions of the files.",
    ]
    if history:
        sections.append(
            "The previous approaches failed, so you need to try "
            "something different this time."
        )
    sections.append(OUTPUT_FORMAT)
    return "\n\n".join(s for s in sections if s) + "\n"

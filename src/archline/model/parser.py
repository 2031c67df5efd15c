"""Recover the structured fix payload from free-form model output."""

import json
from collections.abc import Iterator

from pydantic import BaseModel, Field

from archline.core.errors import EmptyFixSet, MalformedResponse

DEFAULT_SUMMARY = "No summary provided"


class FileEdit(BaseModel):
    """Complete replacement content for one project file."""

    filename: str
    content: str


class FixResult(BaseModel):
    """Parsed model answer: what changed and the files to write."""

    summary: str = DEFAULT_SUMMARY
    files: list[FileEdit] = Field(min_length=1)


def _balanced_end(text: str, start: int) -> int:
    """Return the end index of the object opening at start, or -1.

    Counts brace depth, ignoring braces inside JSON strings.
    """
    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return -1


def iter_json_objects(text: str) -> Iterator[dict]:
    """Yield every balanced {...} substring that decodes to an object.

    Candidates are tried left to right, so prose containing braces
    before the real payload does not hide it.
    """
    start = text.find("{")
    while start != -1:
        end = _balanced_end(text, start)
        if end != -1:
            try:
                value = json.loads(text[start:end])
            except json.JSONDecodeError:
                value = None
            if isinstance(value, dict):
                yield value
        start = text.find("{", start + 1)


def find_json_object(text: str) -> dict:
    """Return the first JSON object embedded in text.

    Raises:
        MalformedResponse: If no balanced substring parses as an object
    """
    for value in iter_json_objects(text):
        return value
    raise MalformedResponse(
        "Could not find a JSON object in the model response"
    )


def parse_fix_response(text: str) -> FixResult:
    """Parse a model response into a FixResult.

    The expected payload is {"summary": str, "files": [{"filename",
    "content"}, ...]}. A missing summary gets a placeholder.

    Raises:
        MalformedResponse: No JSON object in the response
        EmptyFixSet: The object has no usable files
    """
    data = find_json_object(text)

    files = data.get("files")
    if not isinstance(files, list) or not files:
        raise EmptyFixSet("No files included in the response")

    edits = []
    for item in files:
        if not (
            isinstance(item, dict)
            and isinstance(item.get("filename"), str)
            and isinstance(item.get("content"), str)
            and item["filename"].strip()
        ):
            raise EmptyFixSet(
                f"File entry lacks filename/content strings: {item!r:.120}"
            )
        edits.append(FileEdit(filename=item["filename"], content=item["content"]))

    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        summary = DEFAULT_SUMMARY

    return FixResult(summary=summary, files=edits)

"""Edit file tool."""

import asyncio
from pathlib import Path

from pydantic import BaseModel, Field

from tars.tools.base import ToolDefinition, ToolError


class EditFileInput(BaseModel):
    """Input schema for the edit_file tool."""

    path: str = Field(..., description="The path to the file")
    old_str: str = Field(
        ...,
        description="Text to search for - must match exactly and must only have one match exactly",
    )
    new_str: str = Field(..., description="Text to replace old_str with")


def _create_file(path: Path, content: str) -> None:
    if path.parent != Path("."):
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _edit_file(params: EditFileInput) -> str:
    path = Path(params.path)

    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        if params.old_str:
            raise
        _create_file(path, params.new_str)
        return f"Successfully created file {params.path}"

    if not params.old_str:
        # Replacing the empty string would splice new_str between every character.
        raise ToolError("old_str must not be empty when editing an existing file")
    if params.old_str not in content:
        raise ToolError("old_str not found in file")

    path.write_text(content.replace(params.old_str, params.new_str), encoding="utf-8")
    return "OK"


async def edit_file(params: EditFileInput) -> str:
    """Replace ``old_str`` with ``new_str`` in a file, creating the file when it does not exist.

    Raises:
        ToolError: If the input is inconsistent or ``old_str`` does not occur in the file
        OSError: If the file cannot be read or written
    """
    if not params.path or params.old_str == params.new_str:
        raise ToolError("Invalid input parameters")

    return await asyncio.to_thread(_edit_file, params)


def create_edit_file_tool() -> ToolDefinition:
    return ToolDefinition(
        name="edit_file",
        description=(
            "Make edits to a text file.\n\n"
            "Replaces 'old_str' with 'new_str' in the given file. "
            "'old_str' and 'new_str' MUST be different from each other.\n\n"
            "If the file specified with path doesn't exist, it will be created."
        ),
        input_schema_class=EditFileInput,
        handler=edit_file,
    )

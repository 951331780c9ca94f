"""List files tool."""

import asyncio
import json
from pathlib import Path

from pydantic import BaseModel, Field

from tars.tools.base import ToolDefinition


class ListFilesInput(BaseModel):
    """Input schema for the list_files tool."""

    path: str = Field(
        default="",
        description="Optional relative path to list files from. Defaults to current directory if not provided.",
    )


def _list_directory(path: str) -> list[str]:
    directory = Path(path or ".")
    entries = [f"{entry.name}/" if entry.is_dir() else entry.name for entry in directory.iterdir()]
    return sorted(entries)


async def list_files(params: ListFilesInput) -> str:
    """List the entries of a directory as a compact JSON array.

    Directories carry a trailing ``/`` so the model can tell them apart from files.
    """
    entries = await asyncio.to_thread(_list_directory, params.path)
    return json.dumps(entries, ensure_ascii=False, separators=(",", ":"))


def create_list_files_tool() -> ToolDefinition:
    return ToolDefinition(
        name="list_files",
        description=(
            "List files and directories at a given path. "
            "If no path is provided, lists files in the current directory."
        ),
        input_schema_class=ListFilesInput,
        handler=list_files,
    )

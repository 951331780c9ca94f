"""Read file tool."""

import asyncio
from pathlib import Path

from pydantic import BaseModel, Field

from tars.tools.base import ToolDefinition, ToolError


class ReadFileInput(BaseModel):
    """Input schema for the read_file tool."""

    path: str = Field(..., description="The relative path of a file in the working directory.")


async def read_file(params: ReadFileInput) -> str:
    try:
        return await asyncio.to_thread(Path(params.path).read_text, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ToolError(f"Error reading file: {e}") from e


def create_read_file_tool() -> ToolDefinition:
    return ToolDefinition(
        name="read_file",
        description=(
            "Read the contents of a given relative file path. Use this when you want to see what's inside a file. "
            "Do not use this with directory names."
        ),
        input_schema_class=ReadFileInput,
        handler=read_file,
    )

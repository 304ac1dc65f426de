from __future__ import annotations

import os

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from llm_dump.config import DEFAULT_TIMEOUT, DEFAULT_XML_TAG, EXA_API_KEY_ENV, OutputFormat

ENV_FILE = find_dotenv(usecwd=True)


def load_api_key() -> str:
    """Read the content API key, loading a `.env` file first when one is found.

    Variables already present in the environment win over the `.env` file.

    Returns:
        str: the API key, or an empty string when it is not configured.
    """
    if ENV_FILE:
        load_dotenv(ENV_FILE, override=False)
    return os.environ.get(EXA_API_KEY_ENV, "").strip()


class Settings(BaseModel):
    """Configuration for one invocation of the collector."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    dirs: list[str] = Field(default_factory=list, description="Directories to scan.")
    globs: list[str] = Field(default_factory=list, description="Inclusion globs.")
    extensions: list[str] = Field(default_factory=list, description="Extension filters.")
    ignore: list[str] = Field(default_factory=list, description="Extra gitignore-style patterns.")
    filter: str = Field(default="", description="Skip lines matching this regex.")

    urls: list[str] = Field(default_factory=list, description="URLs to fetch.")
    live: bool = Field(default=False, description="Always live-crawl URLs.")
    timeout: int = Field(default=DEFAULT_TIMEOUT, gt=0, description="Fetch timeout in seconds.")
    api_key: str = Field(default="", repr=False, description="Content API key.")

    out_fmt: OutputFormat = Field(default=OutputFormat.XML, description="xml or md.")
    xml_tag: str = Field(default=DEFAULT_XML_TAG, min_length=1, description="XML tag for files.")
    list_only: bool = Field(default=False, description="List file paths only.")
    tree: bool = Field(default=False, description="Render a directory tree per root.")

    panes: list[str] = Field(default_factory=list, description="tmux pane selectors.")
    pane_lines: int = Field(default=0, ge=0, description="History lines per pane, 0 for all.")

    log_file: str = Field(default="", description="Log file path.")

    @field_validator("extensions", mode="after")
    @classmethod
    def _normalize_extensions(cls, value: list[str]) -> list[str]:
        return [ext.strip().lstrip(".").lower() for ext in value]

    @field_validator("out_fmt", mode="before")
    @classmethod
    def _parse_out_fmt(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    def sources(self) -> list[str]:
        """Directories to scan, defaulting to the current one when nothing was requested.

        Returns:
            list[str]: the directories, in submission order.
        """
        if not self.dirs and not self.urls and not self.panes:
            return ["."]
        return list(self.dirs)

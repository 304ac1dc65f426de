from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class DumpError(Exception):
    """Base exception for errors in the llm_dump package."""

    message: str = "llm_dump failed."

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class InvalidPatternError(DumpError):
    """Raised when an inclusion glob has malformed syntax."""

    pattern: str = ""
    message: str = "Invalid glob pattern."

    def __str__(self) -> str:
        return f"{self.message} pattern={self.pattern!r}"


@dataclass(frozen=True)
class InvalidRegexError(DumpError):
    """Raised when the line-exclusion regex does not compile."""

    expression: str = ""
    message: str = "Invalid line filter regex."

    def __str__(self) -> str:
        return f"{self.message} regex={self.expression!r}"


@dataclass(frozen=True)
class PathResolutionError(DumpError):
    """Raised when a root directory cannot be resolved to an absolute path."""

    folder: Path = Path()
    message: str = "Unable to resolve directory."

    def __str__(self) -> str:
        return f"{self.message} dir={str(self.folder)!r}"


@dataclass(frozen=True)
class MissingAPIKeyError(DumpError):
    """Raised when URLs are requested without an API key in the environment."""

    variable: str = "EXA_API_KEY"
    message: str = "Environment variable is required for URL fetching."

    def __str__(self) -> str:
        return f"{self.variable}: {self.message}"


@dataclass(frozen=True)
class ToolNotFoundError(DumpError):
    """Raised when the tmux binary is not available on PATH."""

    tool: str = "tmux"
    message: str = "Required tool not found on PATH."

    def __str__(self) -> str:
        return f"{self.message} tool={self.tool!r}"


@dataclass(frozen=True)
class NoPanesCapturedError(DumpError):
    """Raised when panes were the only source and none could be captured."""

    message: str = "No tmux pane could be captured."


@dataclass(frozen=True)
class InvalidURLError(DumpError):
    """Raised when a URL is malformed or does not use http(s)."""

    url: str = ""
    message: str = "Invalid URL."

    def __str__(self) -> str:
        return f"{self.message} url={self.url!r}"


@dataclass(frozen=True)
class UpstreamError(DumpError):
    """Raised when the content API call fails or answers with a non-success status."""

    url: str = ""
    status: int | None = None
    message: str = "Content API request failed."

    def __str__(self) -> str:
        status = f" status={self.status}" if self.status is not None else ""
        return f"{self.message}{status} url={self.url!r}"


@dataclass(frozen=True)
class EmptyContentError(DumpError):
    """Raised when the content API returns a blank `context` field."""

    url: str = ""
    message: str = "No context field in response."

    def __str__(self) -> str:
        return f"{self.message} url={self.url!r}"


@dataclass(frozen=True)
class TmuxCommandError(DumpError):
    """Raised when a tmux command fails."""

    command: str = ""
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    message: str = "tmux command failed."

    def __str__(self) -> str:
        detail = self.stderr.strip() or self.stdout.strip()
        return f"{self.message} command={self.command!r} returncode={self.returncode} {detail}".rstrip()

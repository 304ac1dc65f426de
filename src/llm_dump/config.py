from __future__ import annotations

from enum import StrEnum, auto

from pydantic import BaseModel, ConfigDict, Field, computed_field

EXA_BASE_URL = "https://api.exa.ai/contents"
EXA_API_KEY_ENV = "EXA_API_KEY"

SNIFF_BYTES = 512
GITIGNORE_FILE = ".gitignore"
IMPLICIT_IGNORES = (".git", GITIGNORE_FILE)

URL_POOL_SIZE = 3
# ~3 requests/second in aggregate across the pool
URL_RATE_LIMIT_DELAY = 0.35
PANE_POOL_CAP = 6

DEFAULT_XML_TAG = "file"
DEFAULT_TIMEOUT = 15
PANE_XML_TAG = "tmux_pane"
WEB_XML_TAG = "web"
URL_PREFIXES = ("http://", "https://")


class OutputFormat(StrEnum):
    """Rendering format for the content stream."""

    XML = auto()
    MD = auto()


class TextClass(StrEnum):
    """Result of the text/binary sniff on a filesystem entry."""

    TEXT = auto()
    BINARY = auto()


class SkipReason(StrEnum):
    """Why the walker left an entry out of a collection.

    None of these abort a walk; they are expected filtering outcomes except
    UNREADABLE and UNRESOLVABLE, which are also logged.
    """

    UNRESOLVABLE = auto()
    IGNORED = auto()
    BINARY = auto()
    FILTERED = auto()
    UNREADABLE = auto()


class Item(BaseModel):
    """One unit of collected content, ready for rendering.

    Attributes:
        path: Display path for files, absolute URL for web content, or a
            synthetic label for panes.
        content: Full text payload.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="Display path, URL or pane label")
    content: str = Field(..., description="Collected text")

    @computed_field
    @property
    def is_web(self) -> bool:
        """Whether the item came from a URL fetch."""
        return self.path.startswith(URL_PREFIXES)


class PaneItem(Item):
    """Captured tmux pane content with its multiplexer coordinates."""

    pane_id: str = Field(..., description="tmux pane id, e.g. %3")
    session: str = Field(..., description="Session name")
    window: int = Field(..., ge=0, description="Window index")
    pane: int = Field(..., ge=0, description="Pane index within the window")


class TreeNode(BaseModel):
    """A file or directory of one scanned root, as shown in the rendered tree."""

    model_config = ConfigDict(frozen=True)

    name: str
    full_path: str
    is_directory: bool
    children: tuple[TreeNode, ...] = ()


TreeNode.model_rebuild()


class SkippedEntry(BaseModel):
    """An entry the walker did not collect, with the reason."""

    model_config = ConfigDict(frozen=True)

    path: str
    reason: SkipReason


class CollectionResult(BaseModel):
    """Everything one root directory produced.

    Exactly one of `items` or `paths_only` is filled, depending on list-only
    mode. `skipped` is diagnostic and never rendered.
    """

    model_config = ConfigDict(frozen=True)

    root: str = Field(..., description="Absolute root directory")
    tree: TreeNode | None = None
    items: tuple[Item, ...] = ()
    paths_only: tuple[str, ...] = ()
    skipped: tuple[SkippedEntry, ...] = ()

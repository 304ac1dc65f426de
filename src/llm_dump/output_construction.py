from __future__ import annotations

from typing import TYPE_CHECKING

from llm_dump.config import DEFAULT_XML_TAG, PANE_XML_TAG, WEB_XML_TAG, OutputFormat, PaneItem

if TYPE_CHECKING:
    from llm_dump.config import Item, TreeNode


def render_pane(item: PaneItem, fmt: OutputFormat) -> str:
    """Render a captured pane.

    Args:
        item (PaneItem): the pane to render
        fmt (OutputFormat): xml or md

    Returns:
        str: the rendered block
    """
    if fmt is OutputFormat.MD:
        meta = f"<!-- tmux pane {item.pane_id} session={item.session} window={item.window} pane={item.pane} -->"
        return f"{meta}\n```sh\n{item.content}```\n"
    attrs = f"id='{item.pane_id}' session='{item.session}' window='{item.window}' pane='{item.pane}'"
    return f"<{PANE_XML_TAG} {attrs}>\n{item.content}</{PANE_XML_TAG}>\n"


def render(item: Item, fmt: OutputFormat, tag: str = DEFAULT_XML_TAG) -> str:
    """Render one collected item.

    In XML mode files use `tag`, URLs the `web` tag and panes the `tmux_pane`
    tag. In Markdown mode files and URLs become a code fence whose info
    string is the path or URL.

    Args:
        item (Item): the item to render
        fmt (OutputFormat): xml or md
        tag (str): XML tag for file items

    Returns:
        str: the rendered block
    """
    if isinstance(item, PaneItem):
        return render_pane(item, fmt)
    if fmt is OutputFormat.MD:
        return f"```{item.path}\n{item.content}```\n"
    if item.is_web:
        return f"<{WEB_XML_TAG} url='{item.path}'>\n{item.content}</{WEB_XML_TAG}>\n"
    return f"<{tag} path='{item.path}'>\n{item.content}</{tag}>\n"


def build_tree_lines(node: TreeNode) -> list[str]:
    """Build a visual tree representation of a scanned root.

    Args:
        node (TreeNode): the root node

    Returns:
        list[str]: a list of strings representing the tree structure, suitable for printing
    """
    lines: list[str] = [node.name]

    def walk(current: TreeNode, prefix: str) -> None:
        for idx, child in enumerate(current.children):
            last = idx == len(current.children) - 1
            branch = "└── " if last else "├── "
            lines.append(prefix + branch + child.name + ("/" if child.is_directory else ""))
            if child.is_directory:
                ext = "    " if last else "│   "
                walk(child, prefix + ext)

    walk(node, "")
    return lines


def render_tree(node: TreeNode, fmt: OutputFormat) -> str:
    """Render a tree inside a `<tree>` tag or a `tree` fence.

    Args:
        node (TreeNode): the root node
        fmt (OutputFormat): xml or md

    Returns:
        str: the rendered block
    """
    body = "\n".join(build_tree_lines(node)) + "\n"
    if fmt is OutputFormat.MD:
        return f"```tree\n{body}```\n"
    return f"<tree>\n{body}</tree>\n"


def render_paths(paths: tuple[str, ...] | list[str]) -> str:
    """Render list-only output: one path per line, no wrapping."""
    return "".join(f"{p}\n" for p in paths)

"""Collect text from directories, URLs and tmux panes into one LLM-ready stream."""

__version__ = "0.4.0"

"""Rendering package."""

from moneywise.rendering.markdown import ListState, MarkdownRenderer, render_markdown

__all__ = ["ListState", "MarkdownRenderer", "render_markdown"]

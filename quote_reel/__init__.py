"""Animated quote video generation."""

from .pipeline import QuoteVideoRequest, QuoteVideoResult, render_quote_video

__all__ = ["QuoteVideoRequest", "QuoteVideoResult", "render_quote_video"]

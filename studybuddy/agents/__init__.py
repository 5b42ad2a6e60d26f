"""
External collaborators of the tutoring engine.

- content_generator: LLM-backed tutoring content (LangChain + OpenAI)
- media: speech synthesis and video avatar interfaces
"""

from .content_generator import ContentGenerator, LLMContentGenerator
from .media import MediaReference, SpeechSynthesizer, VideoAvatarRenderer, render_narration

__all__ = [
    "ContentGenerator",
    "LLMContentGenerator",
    "MediaReference",
    "SpeechSynthesizer",
    "VideoAvatarRenderer",
    "render_narration",
]

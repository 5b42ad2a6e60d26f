"""
Speech and video avatar collaborators.

Both are plain call-and-receive interfaces: given text, return a media
reference. They may be unconfigured or fail; narration is never fatal to
a tutoring session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

MediaKind = Literal["audio", "video"]


@dataclass
class MediaReference:
    """Pointer to rendered media (URL, file path or provider id)."""
    kind: MediaKind
    uri: str
    provider: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str) -> MediaReference:
        ...


@runtime_checkable
class VideoAvatarRenderer(Protocol):
    async def render(self, text: str) -> MediaReference:
        ...


async def render_narration(
    text: str,
    synthesizer: Optional[SpeechSynthesizer] = None,
    avatar: Optional[VideoAvatarRenderer] = None,
) -> List[MediaReference]:
    """
    Produce audio and/or video for a piece of text.

    Args:
        text: Text to narrate
        synthesizer: Speech synthesizer (skipped if None)
        avatar: Video avatar renderer (skipped if None)

    Returns:
        Media references that rendered successfully (possibly empty)
    """
    references: List[MediaReference] = []
    if not text.strip():
        return references

    for name, collaborator, call in (
        ("speech synthesizer", synthesizer, lambda c: c.synthesize(text)),
        ("video avatar renderer", avatar, lambda c: c.render(text)),
    ):
        if collaborator is None:
            continue
        try:
            references.append(await call(collaborator))
        except Exception as e:
            logger.warning("Narration via %s failed: %s", name, e)

    return references

"""
Content Generator - natural-language tutoring material from an LLM.

The engine only depends on the ContentGenerator protocol; LLMContentGenerator
is the LangChain/OpenAI-backed implementation.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol, runtime_checkable

from langchain_core.prompts import PromptTemplate
from langchain_openai import ChatOpenAI

from ..config import config
from ..exceptions import ContentGenerationFailure

logger = logging.getLogger(__name__)

TUTOR_CONTEXT = (
    "You are an expert tutor creating real-time educational content. Provide clear, "
    "engaging explanations adapted to the user's current understanding level and "
    "emotional state."
)
PROBLEM_CONTEXT = (
    "You are an expert problem creator. Generate engaging, educational problems with "
    "clear explanations."
)
VISUAL_CONTEXT = (
    "You are an expert in educational visualization. Create clear, effective visual "
    "learning aids."
)


@runtime_checkable
class ContentGenerator(Protocol):
    """Anything that turns a prompt (plus role context) into text."""

    async def generate(self, prompt: str, context: str = "") -> str:
        """
        Generate text for a prompt.

        Raises:
            ContentGenerationFailure: If no usable text could be produced
        """
        ...


class LLMContentGenerator:
    """
    Content generator backed by an OpenAI chat model through LangChain.

    Errors from the model client and empty completions are raised as
    ContentGenerationFailure so callers can fall back to templates.
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        llm: Optional[ChatOpenAI] = None,
    ):
        """
        Initialize the generator.

        Args:
            model_name: LLM model name (default from config)
            temperature: LLM temperature (default from config)
            max_tokens: Completion token limit (default from config)
            llm: Pre-built chat model (overrides the other arguments)
        """
        self.model_name = model_name or config.model.model_name

        self.llm = llm or ChatOpenAI(
            model=self.model_name,
            temperature=config.model.temperature if temperature is None else temperature,
            max_tokens=max_tokens or config.model.max_tokens,
            api_key=config.model.api_key or None,
            base_url=config.model.base_url,
            timeout=config.model.request_timeout,
        )

        self.prompt_template = PromptTemplate(
            input_variables=["context", "prompt"],
            template="""{context}

{prompt}""",
        )

    async def generate(self, prompt: str, context: str = "") -> str:
        rendered = self.prompt_template.format(context=context or TUTOR_CONTEXT, prompt=prompt)

        try:
            response = await self.llm.ainvoke(rendered)
        except Exception as e:
            raise ContentGenerationFailure(f"Content generation failed: {e}") from e

        text = response.content if isinstance(response.content, str) else str(response.content)
        if not text.strip():
            raise ContentGenerationFailure("Content generator returned an empty response")

        logger.debug("Generated %d characters with %s", len(text), self.model_name)
        return text.strip()


# Prompt templates used by the difficulty controller

EMOTIONAL_ADAPTATION = {
    "frustrated": "Be extra patient and break things down into very simple steps.",
    "anxious": "Provide reassurance and go slowly with clear explanations.",
    "excited": "Match their energy with engaging examples and challenges.",
    "confident": "Provide appropriately challenging content.",
    "calm": "Maintain a steady, clear teaching pace.",
}

CONTENT_PROMPT = PromptTemplate(
    input_variables=["user_input", "topic", "content_type", "difficulty", "emotional_state", "adaptation"],
    template="""User input: "{user_input}"
Topic: {topic}
Content type needed: {content_type}
Target difficulty: {difficulty}/10
User emotional state: {emotional_state}

Adaptation instruction: {adaptation}

Create {content_type} content that directly addresses their input while adapting to their emotional state.""",
)

PROBLEM_PROMPT = PromptTemplate(
    input_variables=["topic", "difficulty", "weak_areas"],
    template="""Create an interactive problem for {topic} at difficulty level {difficulty}/10.
Focus on these weak areas: {weak_areas}.
Include: question, multiple choice options, correct answer, detailed explanation, and hints.

Format your response as JSON:
{{
  "question": "...",
  "options": ["...", "...", "...", "..."],
  "correctAnswer": "...",
  "explanation": "...",
  "hints": ["...", "..."]
}}

IMPORTANT: Respond ONLY with valid JSON, no additional text.""",
)

VISUAL_PROMPT = PromptTemplate(
    input_variables=["concept"],
    template="""Create a visual explanation for the concept: {concept}.
Describe what visual aid would be most effective and provide detailed instructions for creating it.
Consider diagrams, charts, animations, or interactive elements.""",
)

"""
Unit tests for the LLM-backed Content Generator.

The chat model is always mocked; no network access.
"""

import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from studybuddy.agents.content_generator import (
    CONTENT_PROMPT,
    PROBLEM_PROMPT,
    TUTOR_CONTEXT,
    ContentGenerator,
    LLMContentGenerator,
)
from studybuddy.exceptions import ContentGenerationFailure


def mock_llm(content="Derivatives measure rates of change."):
    llm = MagicMock()
    response = MagicMock()
    response.content = content
    llm.ainvoke = AsyncMock(return_value=response)
    return llm


class TestLLMContentGenerator(unittest.IsolatedAsyncioTestCase):
    """Test LLMContentGenerator with a mocked chat model."""

    @patch("studybuddy.agents.content_generator.ChatOpenAI")
    def test_builds_chat_model_from_config(self, mock_chat):
        """Test that the default chat model uses the configured settings."""
        generator = LLMContentGenerator(model_name="gpt-4o-mini", temperature=0.2, max_tokens=300)

        self.assertEqual(generator.model_name, "gpt-4o-mini")
        kwargs = mock_chat.call_args.kwargs
        self.assertEqual(kwargs["model"], "gpt-4o-mini")
        self.assertEqual(kwargs["temperature"], 0.2)
        self.assertEqual(kwargs["max_tokens"], 300)

    def test_satisfies_protocol(self):
        self.assertIsInstance(LLMContentGenerator(llm=mock_llm()), ContentGenerator)

    async def test_generate_returns_text(self):
        llm = mock_llm("  Derivatives measure rates of change.  ")
        generator = LLMContentGenerator(llm=llm)

        text = await generator.generate("Explain derivatives", "You are a tutor.")

        self.assertEqual(text, "Derivatives measure rates of change.")
        rendered = llm.ainvoke.call_args.args[0]
        self.assertIn("You are a tutor.", rendered)
        self.assertIn("Explain derivatives", rendered)

    async def test_default_context(self):
        llm = mock_llm()
        await LLMContentGenerator(llm=llm).generate("Explain derivatives")

        self.assertIn(TUTOR_CONTEXT, llm.ainvoke.call_args.args[0])

    async def test_api_error_raises_failure(self):
        llm = MagicMock()
        llm.ainvoke = AsyncMock(side_effect=RuntimeError("rate limited"))

        with self.assertRaises(ContentGenerationFailure):
            await LLMContentGenerator(llm=llm).generate("Explain derivatives")

    async def test_empty_response_raises_failure(self):
        with self.assertRaises(ContentGenerationFailure):
            await LLMContentGenerator(llm=mock_llm("   ")).generate("Explain derivatives")


class TestPrompts(unittest.TestCase):
    """Test prompt templates used by the controller."""

    def test_content_prompt(self):
        prompt = CONTENT_PROMPT.format(
            user_input="show me",
            topic="Derivatives",
            content_type="example",
            difficulty=6,
            emotional_state="anxious",
            adaptation="Go slowly.",
        )
        self.assertIn("Target difficulty: 6/10", prompt)
        self.assertIn("Adaptation instruction: Go slowly.", prompt)

    def test_problem_prompt_keeps_json_braces(self):
        prompt = PROBLEM_PROMPT.format(topic="Derivatives", difficulty=4, weak_areas="chain rule")
        self.assertIn('"correctAnswer": "..."', prompt)
        self.assertIn("Focus on these weak areas: chain rule.", prompt)


if __name__ == "__main__":
    unittest.main()

"""
Prompt construction tests.

Usage:
    python -m pytest tests/test_prompt.py -v
"""

import pytest

from core.messages import (
    AssistantMessage,
    ImagePart,
    SystemMessage,
    TextPart,
    ToolMessage,
    UserMessage,
)
from core.prompt import ModelFamily, PromptBuilder, PromptStyle, build_prompt, get_profile


class TestMistralStyle:
    """[INST] block formatting."""

    def setup_method(self):
        self.builder = PromptBuilder(PromptStyle.MISTRAL)

    def test_system_then_user_golden(self):
        prompt = self.builder.build([SystemMessage("S"), UserMessage("U")])
        assert prompt == "<s>[INST] S Hi [/INST] Hello! how can I help you</s>[INST] U [/INST]"

    def test_user_first_gets_bos(self):
        assert self.builder.build([UserMessage("hi")]) == "<s>[INST] hi [/INST]"

    def test_assistant_is_verbatim(self):
        prompt = self.builder.build([UserMessage("a"), AssistantMessage("b"), UserMessage("c")])
        assert prompt == "<s>[INST] a [/INST]b[INST] c [/INST]"

    def test_tool_message(self):
        prompt = self.builder.build([UserMessage("a"), ToolMessage("42", tool_call_id="t1")])
        assert prompt == "<s>[INST] a [/INST]<|TOOL|>42"

    def test_multipart_user(self):
        parts = (TextPart("look "), ImagePart("http://x/cat.png", "high"), TextPart(" and"), ImagePart("u2"))
        prompt = self.builder.build([UserMessage(parts)])
        assert prompt == "<s>[INST] look <IMAGE http://x/cat.png> (high) and<IMAGE u2> [/INST]"


class TestRoleTagStyle:
    """<|ROLE|> tag formatting."""

    def setup_method(self):
        self.builder = PromptBuilder(PromptStyle.ROLE_TAGS)

    def test_system_then_user_golden(self):
        assert self.builder.build([SystemMessage("S"), UserMessage("U")]) == "<s><|SYSTEM|>S<|USER|>U"

    def test_full_conversation(self):
        prompt = self.builder.build([
            SystemMessage("sys"),
            UserMessage("q"),
            AssistantMessage("a"),
            ToolMessage("r", tool_call_id="c1"),
        ])
        assert prompt == "<s><|SYSTEM|>sys<|USER|>q<|ASSISTANT|>a<|TOOL|>r"

    def test_multipart_user(self):
        prompt = self.builder.build([UserMessage((TextPart("see"), ImagePart("u")))])
        assert prompt == "<s><|USER|>see<IMAGE u>"


class TestBosAndEmptyContent:
    """Leading marker rules and skipped messages."""

    def test_assistant_first_has_no_bos(self):
        builder = PromptBuilder(PromptStyle.ROLE_TAGS)
        assert builder.build([AssistantMessage("a"), UserMessage("b")]) == "<|ASSISTANT|>a<|USER|>b"

    def test_messages_without_content_emit_nothing(self):
        builder = PromptBuilder(PromptStyle.ROLE_TAGS)
        prompt = builder.build([SystemMessage(None), UserMessage("u"), AssistantMessage(None)])
        # The user message sits at index 1, so no <s> is added
        assert prompt == "<|USER|>u"

    def test_empty_conversation(self):
        assert PromptBuilder(PromptStyle.MISTRAL).build([]) == ""


class TestFamilies:
    """Family -> style resolution."""

    @pytest.mark.parametrize("family", [
        ModelFamily.MISTRAL_7B_INSTRUCT,
        ModelFamily.MISTRAL_7B_INSTRUCT_V02,
        ModelFamily.ZEPHYR_7B_ALPHA,
        ModelFamily.ZEPHYR_7B_BETA,
    ])
    def test_mistral_families(self, family):
        assert get_profile(family).style is PromptStyle.MISTRAL

    @pytest.mark.parametrize("family", ["phi-2", "gemma", "none", "openchat-3.5"])
    def test_role_tag_families(self, family):
        assert get_profile(family).style is PromptStyle.ROLE_TAGS

    def test_openchat_eos(self):
        assert get_profile("openchat-3.5").eos_token == "<|end_of_turn|>"
        assert get_profile("phi-2").eos_token == "</s>"

    def test_unknown_family_rejected(self):
        with pytest.raises(ValueError):
            get_profile("llama-9000")

    def test_build_prompt_helper(self):
        assert build_prompt([UserMessage("x")], "zephyr-7b-beta") == "<s>[INST] x [/INST]"

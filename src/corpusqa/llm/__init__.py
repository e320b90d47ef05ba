"""LLM providers, their factory and the prompt builder."""

from .factory import build_llm_provider, initialize_llm_provider, parse_llm_provider_settings
from .prompt import DEFAULT_PROMPT_TEMPLATE, ContextDocument, PromptBuilder, PromptTemplateData
from .service import LLMProvider, NoOpLLM, OpenAILLM, Prompt

__all__ = [
    "DEFAULT_PROMPT_TEMPLATE",
    "ContextDocument",
    "LLMProvider",
    "NoOpLLM",
    "OpenAILLM",
    "Prompt",
    "PromptBuilder",
    "PromptTemplateData",
    "build_llm_provider",
    "initialize_llm_provider",
    "parse_llm_provider_settings",
]

"""Interactive prompts."""

from .prompter import (
    Choice,
    NonInteractivePrompter,
    PromptError,
    PromptProtocol,
    ScriptedPrompter,
    TyperPrompter,
    is_interactive_terminal,
)

__all__ = [
    "Choice",
    "NonInteractivePrompter",
    "PromptError",
    "PromptProtocol",
    "ScriptedPrompter",
    "TyperPrompter",
    "is_interactive_terminal",
]

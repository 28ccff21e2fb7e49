"""Service layer orchestrations for courserag."""

from .chat import ChatConfig, ChatOrchestrator, PromptBuilder, PromptBuilderConfig
from .exams import ExamQuestion, calculate_exam_score
from .generation import ChatModel, GenerationConfig, OpenAIChatModel, TemplateChatModel

__all__ = [
    "ChatConfig",
    "ChatModel",
    "ChatOrchestrator",
    "ExamQuestion",
    "GenerationConfig",
    "OpenAIChatModel",
    "PromptBuilder",
    "PromptBuilderConfig",
    "TemplateChatModel",
    "calculate_exam_score",
]

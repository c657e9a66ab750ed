from typing import List

from langchain_core.messages import BaseMessage
from langchain_core.prompts import ChatPromptTemplate

MAX_INSTRUCTION_WORDS = 50

INSTRUCTION_PROMPT = ChatPromptTemplate.from_messages([
    ("system", "You are a helpful DOM tutor. Generate a brief, clear instruction in {language} "
               "for interacting with a web element. Keep it under {max_words} words."),
    ("user", "Element: {element_label}\nHTML Context: {html_context}\nLanguage: {language}"),
])


def build_instruction_messages(element_label: str, html_context: str, language: str) -> List[BaseMessage]:
    """Render the system + user messages for one instruction request."""
    return INSTRUCTION_PROMPT.format_messages(
        element_label=element_label,
        html_context=html_context,
        language=language,
        max_words=MAX_INSTRUCTION_WORDS,
    )


def fallback_instruction(element_label: str) -> str:
    return f'Click on the "{element_label}" to proceed.'

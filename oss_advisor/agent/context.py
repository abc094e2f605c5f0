"""
Context Assembly
================

Builds what the model sees for one request:

1. UserContext: facts inferred from earlier user turns (name, skills,
   interests, experience level). Rebuilt on every request, never stored.
2. The outbound input: identity questions ("what's my name?") get a
   one-off annotation with the known name. The annotation is only sent to
   the model; the unannotated input is what gets stored.
3. The message list: system prompt (with the user facts), prior turns in
   chronological order, then the current input.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from oss_advisor.memory.models import ConversationTurn, TurnRole
from oss_advisor.utils.logger import Logger

logger = Logger("Context")

NAME_PATTERN = re.compile(r"my name is (\w+)|i'm (\w+)|i am (\w+)", re.IGNORECASE)
SKILL_PATTERN = re.compile(
    r"\b(javascript|python|react|node|angular|vue|typescript)\b", re.IGNORECASE
)
INTEREST_PATTERN = re.compile(r"\b(frontend|backend)\b", re.IGNORECASE)
EXPERIENCE_PATTERN = re.compile(r"\b(beginner|intermediate|advanced)\b", re.IGNORECASE)
IDENTITY_PATTERN = re.compile(r"name|who am i", re.IGNORECASE)


class ExperienceLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


@dataclass
class UserContext:
    """
    What we know about the user in this conversation.

    Attributes:
        name: First name the user gave, if any
        skills: Known technologies, lowercased
        interests: Areas of interest, lowercased
        experience_level: Self-described level, if any
    """
    name: str | None = None
    skills: set[str] = field(default_factory=set)
    interests: set[str] = field(default_factory=set)
    experience_level: ExperienceLevel | None = None

    def is_empty(self) -> bool:
        return not (self.name or self.skills or self.interests or self.experience_level)

    def describe(self) -> str:
        """Bullet list for the system prompt; empty when nothing is known."""
        lines = []
        if self.name:
            lines.append(f"- Name: {self.name}")
        if self.skills:
            lines.append(f"- Skills: {', '.join(sorted(self.skills))}")
        if self.interests:
            lines.append(f"- Interests: {', '.join(sorted(self.interests))}")
        if self.experience_level:
            lines.append(f"- Experience level: {self.experience_level.value}")
        return "\n".join(lines)


class ContextExtractor:
    """
    Infers a UserContext from conversation turns.

    Only user turns are scanned. For name and experience level the first
    match wins; skills and interests accumulate.

    Example:
        context = ContextExtractor().extract(turns)
        context.name          # "Dana"
        context.skills        # {"react", "python"}
    """

    def extract(self, turns: Iterable[ConversationTurn]) -> UserContext:
        context = UserContext()

        for turn in turns:
            if turn.role != TurnRole.USER:
                continue
            text = turn.text

            if context.name is None:
                match = NAME_PATTERN.search(text)
                if match:
                    context.name = next(group for group in match.groups() if group)

            context.skills.update(skill.lower() for skill in SKILL_PATTERN.findall(text))
            context.interests.update(interest.lower() for interest in INTEREST_PATTERN.findall(text))

            if context.experience_level is None:
                match = EXPERIENCE_PATTERN.search(text)
                if match:
                    context.experience_level = ExperienceLevel(match.group(1).lower())

        return context


def is_identity_question(text: str) -> bool:
    return bool(IDENTITY_PATTERN.search(text))


def annotate_input(user_input: str, context: UserContext) -> str:
    """
    Prefix identity questions with the known name.

    "who am i?" -> "(Context: User's name is Dana) who am i?"
    """
    if not is_identity_question(user_input):
        return user_input
    return f"(Context: User's name is {context.name or 'unknown'}) {user_input}"


SYSTEM_PROMPT = """You are an AI GitHub assistant that helps people find open-source repositories and issues to work on.

IMPORTANT:
- When listing repositories, always include the repository link in markdown format like [owner/repo]
- Present repositories with their full names and URLs
- Include relevant statistics like stars and forks
- Format repository names consistently as [owner/repo]
- Tailor suggestions to the user's skills and experience level when you know them

Example response:
"Here's a popular JavaScript repository: [facebook/react] with over 200k stars..."

Remember to search and provide real-time information using the tools!
{user_context}"""


class ContextAssembler:
    """
    Builds the OpenAI message list for one model invocation.

    Example:
        assembler = ContextAssembler()
        messages = assembler.build_messages(history, annotated_input, user_context)
    """

    def __init__(self, system_prompt: str = SYSTEM_PROMPT):
        self.system_prompt = system_prompt

    def build_system_message(self, context: UserContext) -> str:
        user_block = ""
        if not context.is_empty():
            user_block = f"\nWhat you know about the user:\n{context.describe()}"
        return self.system_prompt.format(user_context=user_block).rstrip()

    def build_messages(
        self,
        history: list[ConversationTurn],
        agent_input: str,
        context: UserContext
    ) -> list[dict]:
        """
        Args:
            history: Prior turns, oldest first
            agent_input: The (possibly annotated) current input
            context: Facts for the system prompt

        Returns:
            Messages in OpenAI chat format
        """
        messages = [{"role": "system", "content": self.build_system_message(context)}]
        for turn in history:
            messages.append({"role": turn.role.value, "content": turn.text})
        messages.append({"role": "user", "content": agent_input})

        logger.debug(f"Assembled {len(messages)} messages ({len(history)} from memory)")
        return messages

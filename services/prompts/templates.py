"""
Prompt templating for user messages.

Rules run in a fixed order on the raw message text:

1. strip the bot mention token
2. strip every ", " (see strip_comma_space)
3. expand !expert then !jb from stored snippets
4. expand !uwu with a quoted name

Pure logic: no I/O, no async.
"""

from __future__ import annotations

import re

from shared.chat.conversations import PromptLibrary
from shared.errors import MissingNameError

EXPERT_MACRO = "!expert"
JB_MACRO = "!jb"
UWU_MACRO = "!uwu"

REQUIRED_SNIPPETS = ("expert", "jb", "uwu")

NAME_PLACEHOLDERS = ("{FIRST_NAME}", "{FULL_NAME}", "{LAST_NAME}")
NAME_PLACEHOLDER = "{NAME}"

_TRAILING_QUOTED = re.compile(r'(?:^|\s)("[^"]*")\s*$')


def strip_comma_space(text: str) -> str:
    """
    Remove every ", " from the text.

    NOTE: this applies to all user text, not just mention leftovers.
    Kept as its own step so it can be narrowed in one place.
    """
    return text.replace(", ", "")


def last_argument(text: str) -> str:
    """
    Return the final argument of a message.

    A trailing double-quoted phrase counts as one argument; otherwise
    the last whitespace-separated token is used.
    """
    match = _TRAILING_QUOTED.search(text)
    if match:
        return match.group(1)

    tokens = text.split()
    return tokens[-1] if tokens else ""


def expand_name_template(template: str, name: str) -> str:
    for placeholder in NAME_PLACEHOLDERS:
        template = template.replace(placeholder, NAME_PLACEHOLDER)
    return template.replace(NAME_PLACEHOLDER, name)


class PromptTemplateEngine:
    """
    Applies the macro and cleanup rules for one bot identity.
    """

    def __init__(self, *, prompts: PromptLibrary, mention_token: str):
        self._prompts = prompts
        self._mention_token = mention_token

    def render(self, text: str) -> str:
        """
        Return the text to send as the user turn.

        Raises:
        - MissingSnippetError if expert / jb / uwu is not loaded
        - MissingNameError if !uwu has no quoted name
        """
        expert = self._prompts.get("expert")
        jb = self._prompts.get("jb")
        uwu = self._prompts.get("uwu")

        text = text.replace(self._mention_token, "")
        text = strip_comma_space(text)

        text = text.replace(EXPERT_MACRO, expert)
        text = text.replace(JB_MACRO, jb)

        if UWU_MACRO in text:
            text = text.replace(UWU_MACRO, self._uwu(uwu, text))

        return text

    @staticmethod
    def _uwu(template: str, text: str) -> str:
        argument = last_argument(text)
        if '"' not in argument:
            raise MissingNameError("You need to provide a name.")

        name = " ".join(argument.replace('"', "").split())
        return expand_name_template(template, name)

import pytest

from services.prompts.templates import (
    PromptTemplateEngine,
    expand_name_template,
    last_argument,
    strip_comma_space,
)
from shared.chat.conversations import PromptLibrary, PromptSnippet
from shared.errors import MissingNameError, MissingSnippetError

MENTION = "<@1111>"


@pytest.fixture
def engine(prompts):
    return PromptTemplateEngine(prompts=prompts, mention_token=MENTION)


def test_plain_text_only_loses_comma_space(engine):
    text = "Well, I think so, maybe. Commas,without spaces stay."

    assert engine.render(text) == "WellI think somaybe. Commas,without spaces stay."


def test_strip_comma_space_is_global():
    assert strip_comma_space("a, b, c") == "abc"
    assert strip_comma_space("no commas here") == "no commas here"


def test_mention_token_is_removed(engine):
    assert engine.render(f"{MENTION} what is love") == " what is love"


def test_other_mentions_are_kept(engine):
    assert engine.render("<@4242> hello") == "<@4242> hello"


def test_expert_resolves_before_jb(engine):
    assert engine.render("!expert !jb") == "E J"


def test_jb_expands_inside_inserted_expert_text():
    prompts = PromptLibrary(
        [
            PromptSnippet("expert", "!jb"),
            PromptSnippet("jb", "J"),
            PromptSnippet("uwu", "U"),
        ]
    )
    engine = PromptTemplateEngine(prompts=prompts, mention_token=MENTION)

    assert engine.render("!expert") == "J"


def test_later_snippet_text_is_not_rescanned():
    prompts = PromptLibrary(
        [
            PromptSnippet("expert", "E"),
            PromptSnippet("jb", "!expert"),
            PromptSnippet("uwu", "U"),
        ]
    )
    engine = PromptTemplateEngine(prompts=prompts, mention_token=MENTION)

    assert engine.render("!jb") == "!expert"


def test_uwu_expands_quoted_full_name():
    assert (
        expand_name_template("Hi {FIRST_NAME}/{FULL_NAME}/{LAST_NAME}", "Jane Doe")
        == "Hi Jane Doe/Jane Doe/Jane Doe"
    )


def test_uwu_in_message_uses_trailing_quoted_name(engine):
    rendered = engine.render('!uwu "Jane Doe"')

    assert rendered.startswith("Hi Jane Doe/Jane Doe/Jane Doe")
    assert "!uwu" not in rendered


def test_uwu_single_token_with_quote(engine):
    assert engine.render('!uwu Jane"').startswith("Hi Jane/Jane/Jane")


def test_uwu_without_quote_is_missing_name(engine):
    with pytest.raises(MissingNameError):
        engine.render("!uwu test")


def test_last_argument_prefers_trailing_quoted_phrase():
    assert last_argument('!uwu "Jane  Doe" ') == '"Jane  Doe"'
    assert last_argument("!uwu Jane") == "Jane"
    assert last_argument('say "hi" !uwu Bob"') == 'Bob"'
    assert last_argument("") == ""


def test_missing_snippet_is_fatal_even_without_macro():
    prompts = PromptLibrary([PromptSnippet("expert", "E"), PromptSnippet("jb", "J")])
    engine = PromptTemplateEngine(prompts=prompts, mention_token=MENTION)

    with pytest.raises(MissingSnippetError) as exc:
        engine.render("hello")

    assert exc.value.prompt_id == "uwu"

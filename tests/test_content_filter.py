import pytest
from utils.content_filter import validate


@pytest.mark.parametrize("text", [
    "Love the bridge, the second verse really lands",
    "The bass line in the intro is great",
    "Hello there, nice chorus",
    "",
])
def test_clean_text_passes(text):
    result = validate(text)
    assert result.valid
    assert result.reason is None


@pytest.mark.parametrize("text", [
    "check https://spam.example",
    "visit www.example",
    "go to mysite.xyz now",
    "DEALS.COM",
])
def test_urls_rejected(text):
    result = validate(text)
    assert not result.valid
    assert result.rule == "url"
    assert result.reason == "URLs are not allowed in comments"


def test_cyrillic_rejected():
    result = validate("Привет")
    assert result.reason == "Russian characters are not allowed"


def test_cjk_rejected():
    result = validate("你好")
    assert result.reason == "Chinese characters are not allowed"


def test_spam_is_case_insensitive_substring():
    result = validate("Great track, CLICK HERE for more")
    assert result.rule == "spam"
    assert result.reason == "Content contains prohibited words"


def test_profanity_is_whole_word():
    assert validate("what the hell is that snare").rule == "profanity"
    assert validate("hello from the other side").valid
    assert validate("the bass is muddy").valid


def test_profanity_can_be_switched_off():
    assert validate("damn good hook", block_profanity=False).valid
    assert validate("damn good hook").reason == "Content contains inappropriate language"


def test_rules_short_circuit_in_order():
    # url beats spam beats profanity
    assert validate("free money at www.x and damn").rule == "url"
    assert validate("buy now damn").rule == "spam"

# utils/content_filter.py

import re
from typing import NamedTuple, Optional

# --- Rules -------------------------------------------------------------------

URL_TLDS = (
    "com", "net", "org", "io", "co", "ru", "cn", "info", "biz", "xyz",
    "top", "online", "site", "club", "shop", "store", "link",
)
URL_PATTERN = re.compile(
    r"(https?://|www\.|[a-zA-Z0-9-]+\.(" + "|".join(URL_TLDS) + r"))",
    re.IGNORECASE,
)
CYRILLIC_PATTERN = re.compile(r"[\u0400-\u04FF]")
CJK_PATTERN = re.compile(r"[\u4E00-\u9FFF]")

SPAM_PHRASES = (
    'viagra', 'cialis', 'casino', 'poker', 'lottery', 'winner',
    'click here', 'buy now', 'limited time', 'act now',
    'free money', 'make money', 'work from home', 'earn cash',
    'weight loss', 'lose weight', 'diet pills',
    'crypto', 'bitcoin', 'investment opportunity',
    'congratulations', 'you won', 'claim prize',
    'nigerian prince', 'inheritance', 'million dollars',
    'enlargement', 'pharmacy', 'prescription',
    'dating', 'singles', 'meet women', 'meet men',
    'replica', 'rolex', 'luxury watches',
    'seo services', 'increase traffic', 'backlinks',
)

PROFANITY = (
    # profanity
    'fuck', 'shit', 'bitch', 'asshole', 'bastard', 'damn', 'hell',
    'crap', 'piss', 'dick', 'cock', 'pussy', 'cunt', 'whore', 'slut',
    'fag', 'faggot', 'nigger', 'nigga', 'retard', 'retarded',
    # variations and misspellings
    'f*ck', 'f**k', 'sh*t', 'sh!t', 'b*tch', 'a**hole', 'a$$hole',
    'fuk', 'fck', 'fuq', 'phuck', 'shyt', 'biatch', 'beotch',
    # slurs
    'chink', 'spic', 'kike', 'wetback', 'towelhead', 'raghead',
    # sexual content
    'porn', 'xxx', 'sex', 'nude', 'naked', 'boobs', 'tits', 'ass',
    'anal', 'blowjob', 'handjob', 'masturbate', 'orgasm',
    # drugs
    'cocaine', 'heroin', 'meth', 'weed', 'marijuana', 'cannabis',
    'ecstasy', 'molly', 'lsd', 'crack',
)
PROFANITY_PATTERNS = tuple(re.compile(r"\b" + re.escape(word) + r"\b") for word in PROFANITY)

REASONS = {
    "url": "URLs are not allowed in comments",
    "cyrillic": "Russian characters are not allowed",
    "cjk": "Chinese characters are not allowed",
    "spam": "Content contains prohibited words",
    "profanity": "Content contains inappropriate language",
}


class FilterResult(NamedTuple):
    valid: bool
    reason: Optional[str] = None
    rule: Optional[str] = None


ACCEPTED = FilterResult(True)


def _rejected(rule):
    return FilterResult(False, REASONS[rule], rule)


# --- Individual checks -------------------------------------------------------

def contains_url(text):
    return URL_PATTERN.search(text) is not None


def contains_cyrillic(text):
    return CYRILLIC_PATTERN.search(text) is not None


def contains_cjk(text):
    return CJK_PATTERN.search(text) is not None


def contains_spam(text):
    lowered = text.lower()
    return any(phrase in lowered for phrase in SPAM_PHRASES)


def contains_profanity(text):
    lowered = text.lower()
    return any(pattern.search(lowered) for pattern in PROFANITY_PATTERNS)


# --- Pipeline ----------------------------------------------------------------

def validate(text: str, block_profanity: bool = True) -> FilterResult:
    """
    Run free text through the comment policy, stopping at the first violation.
    Order: URLs, Cyrillic, CJK ideographs, spam phrases, then (when enabled)
    whole-word profanity. Only lowercasing is applied; length and emptiness
    are the caller's business.
    """
    if contains_url(text):
        return _rejected("url")
    if contains_cyrillic(text):
        return _rejected("cyrillic")
    if contains_cjk(text):
        return _rejected("cjk")
    if contains_spam(text):
        return _rejected("spam")
    if block_profanity and contains_profanity(text):
        return _rejected("profanity")
    return ACCEPTED

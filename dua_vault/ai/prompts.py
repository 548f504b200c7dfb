"""
Prompt templates for the generative backend.
"""

from dua_vault.ai.schemas import CATEGORY_VALUES

_CATEGORIES = ", ".join(CATEGORY_VALUES)

TRANSLATE_PROMPT = """You are an expert in Islamic liturgy and classical Arabic.

Analyze this Arabic dua:

{text}

1. Return the Arabic text exactly as given, correcting only obvious OCR typos.
2. Provide a faithful English translation of its meaning.
3. Categorize it as one of: {categories}.

Return ONLY JSON."""

CLEANUP_PROMPT = """You are correcting OCR output of an Arabic dua.

OCR TEXT:
{text}

RULES:
1. Fix character-level OCR errors (wrong dots, broken or merged words).
2. Use your knowledge of well-known duas to restore the intended wording.
3. Do NOT translate, explain or add text that is not in the source.
4. Keep diacritics (harakat) where they are visible in the source.

Return ONLY JSON with the corrected Arabic."""

# Escalating image prompts: each demands stricter fidelity than the last
IMAGE_PROMPTS = (
    """You are an expert in Islamic liturgy and Arabic calligraphy.
1. Extract the Arabic dua from this image with 100% accuracy.
2. Correct any obvious OCR typos using your knowledge of famous duas.
{translation_step}
4. Categorize as one of: {categories}.
Return ONLY JSON.""",
    """Transcribe the Arabic text in this image EXACTLY as written.
- Output Arabic script only in the "arabic" field; never transliterate.
- Do not summarize, paraphrase or complete the text from memory.
- If part of the text is unreadable, transcribe only what is visible.
{translation_step}
Categorize as one of: {categories}.
Return ONLY JSON.""",
    """STRICT MODE. Your previous answer did not contain usable Arabic text.
Read the image again, character by character, right to left.
The "arabic" field MUST contain the Arabic characters visible in the image
and nothing else: no Latin letters, no commentary, no placeholders.
{translation_step}
Categorize as one of: {categories}.
Return ONLY JSON.""",
)

IMAGE_TRANSLATION_STEP = "3. Provide a faithful English translation."
IMAGE_NO_TRANSLATION_STEP = "3. Do not translate; return the Arabic only."

URL_PROMPT = """Find and extract the main Arabic dua from this website: {url}
Provide the Arabic text, a faithful English translation and the correct
category (one of: {categories}).
Return ONLY a JSON object with the keys "arabic", "translation", "category"."""


def translate_prompt(text: str) -> str:
    return TRANSLATE_PROMPT.format(text=text, categories=_CATEGORIES)


def cleanup_prompt(text: str) -> str:
    return CLEANUP_PROMPT.format(text=text)


def image_prompt(level: int, include_translation: bool) -> str:
    step = IMAGE_TRANSLATION_STEP if include_translation else IMAGE_NO_TRANSLATION_STEP
    return IMAGE_PROMPTS[level].format(translation_step=step, categories=_CATEGORIES)


def url_prompt(url: str) -> str:
    return URL_PROMPT.format(url=url, categories=_CATEGORIES)

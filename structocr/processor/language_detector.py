# processor/language_detector.py
"""
Detector de idioma determinista.

Cuenta stopwords y palabras estructurales (artículo, capítulo...) o rangos de
escritura Unicode en los primeros 2000 caracteres. Sin dependencias externas,
sin efectos secundarios.
"""
import re

UNKNOWN = "unknown"

_SAMPLE_CHARS = 2000
_MIN_TEXT_CHARS = 50
_MIN_SCORE = 3

_LANGUAGE_RULES: dict[str, list[re.Pattern]] = {
    "vi": [
        re.compile(r"\b(của|và|là|những|trong|việc|điều|chương|khoản|luật|nghị định)\b"),
        re.compile(r"[ăâđêôơưàảãáạằẳẵắặầẩẫấậèẻẽéẹềểễếệìỉĩíịòỏõóọồổỗốộờởỡớợùủũúụừửữứựỳỷỹýỵ]"),
    ],
    "pt": [
        re.compile(r"\b(de|que|do|da|para|com|não|artigo|lei|capítulo)\b"),
        re.compile(r"[À-ÿ]"),
    ],
    "en": [re.compile(r"\b(the|and|of|to|in|is|that|section|chapter|article)\b")],
    "es": [re.compile(r"\b(de|que|el|la|en|y|los|del|se|artículo|ley)\b")],
    "fr": [re.compile(r"\b(le|la|les|de|des|en|un|une|est|article|chapitre)\b")],
    "de": [re.compile(r"\b(der|die|das|und|in|den|von|zu|artikel|kapitel)\b")],
    "it": [re.compile(r"\b(il|la|di|che|in|per|un|articolo)\b")],
    "nl": [re.compile(r"\b(de|van|een|en|het|in|is|artikel)\b")],
    "ru": [
        re.compile(r"[Ѐ-ӿ]+"),
        re.compile(r"\b(статья|глава|раздел)\b"),
    ],
    "zh": [
        re.compile(r"[^\x00-\xff]+"),
        re.compile(r"第[0-9]+章|条"),
    ],
    "ja": [re.compile(r"[぀-ゟ゠-ヿ]+")],   # hiragana/katakana
    "ko": [re.compile(r"[가-힯]+")],                # hangul
    "ar": [re.compile(r"[؀-ۿ]+")],
    "hi": [re.compile(r"[ऀ-ॿ]+")],                # devanagari
}

SUPPORTED_LANGUAGES: tuple[str, ...] = tuple(_LANGUAGE_RULES)


def score_languages(text: str) -> dict[str, int]:
    """Suma de coincidencias de todas las reglas de cada idioma."""
    sample = (text or "")[:_SAMPLE_CHARS].lower()
    return {
        lang: sum(len(pattern.findall(sample)) for pattern in patterns)
        for lang, patterns in _LANGUAGE_RULES.items()
    }


def detect_language(text: str) -> str:
    """
    Devuelve el código del idioma con mayor puntuación, o "unknown" si:
    - el texto tiene menos de 50 caracteres
    - hay empate en la puntuación más alta
    - la puntuación ganadora es menor que 3 (basura OCR, texto sin stopwords)
    """
    if not text or len(text) < _MIN_TEXT_CHARS:
        return UNKNOWN

    scores = score_languages(text)
    best_score = max(scores.values())

    if best_score < _MIN_SCORE:
        return UNKNOWN

    winners = [lang for lang, score in scores.items() if score == best_score]
    if len(winners) > 1:
        return UNKNOWN
    return winners[0]

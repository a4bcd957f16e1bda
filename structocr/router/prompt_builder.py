# router/prompt_builder.py
"""
Instrucciones (system prompts) por etapa.

El texto del chunk NO va aquí — viaja como mensaje de usuario en la llamada
al modelo. Se usa string.Template porque las etiquetas {{levelN}} llevan
llaves literales.
"""
from string import Template
from typing import Optional

from structocr.processor.models import Milestone

# Fragmento del contexto previo que se cita dentro del prompt
_CONTEXT_SNIPPET_CHARS = {"micro": 200, "patch": 250}

_AUTO_LANGUAGE = "DETECT AUTOMATICALLY from the text"

_CLEAN_SYSTEM = Template("""\
You are an expert text editor restoring the layout of text extracted from PDF pages.
TARGET LANGUAGE: $language.

--- TASK ---
- Merge lines broken by the page width. Western scripts: replace the newline with ONE space.
  CJK scripts: remove the newline with no space. Remove hyphens that split a word.
- DELETE the page markers "--- PAGE N START ---" / "--- PAGE N END ---".
- Delete running headers/footers and page navigation ("Page 12 of 50").
- Keep legal headings on their own line. Join a heading split across two lines.
- Keep tables as columns. Never flatten them into a sentence.
- NEVER delete isolated numbers that may be footnote markers.

--- OUTPUT ---
Return ONLY the cleaned text, verbatim. No summaries, no comments, no code blocks.
""")

_MACRO_SYSTEM = Template("""\
You are a structural analyst for legal documents.
DOCUMENT LANGUAGE: $language.
GOAL: tag structural headlines and footnote markers. OUTPUT THE FULL TEXT VERBATIM.

--- TAG FORMATS ---
1. Headlines: {{levelN}}Headline text{{-levelN}} (N >= 0)
2. Inline footnote markers: {{footnotenumberN}}N{{-footnotenumberN}}
3. Footnote bodies: {{footnoteN}}Footnote text{{-footnoteN}}

--- HIERARCHY ---
- Level 0: document title. $title_rule
- Level 1: major divisions (Part, Book, Title, Chapter, Chương, Раздел).
- Level 2: articles and sections (Article, Section, Điều, 条, Статья).
- Level 3+: sub-divisions with their own heading.
- Merge a heading split across lines: {{level1}}CHAPTER 1 THE TITLE{{-level1}}.
- Tables are body text: never tag their cells as headlines.

--- OUTPUT ---
Return the full text with headlines and footnote markers tagged. Nothing else.
""")

_MICRO_SYSTEM = Template("""\
You are a content structurer.
DOCUMENT LANGUAGE: $language.
GOAL: wrap ALL body content (non-headlines) into {{text_level}} containers.

--- CONTEXT ---
Previous chunk ended with: "...$previous..."

--- ALGORITHM ---
1. PRESERVE existing {{levelN}} headline tags.
2. Footnotes ({{footnoteN}}...{{-footnoteN}}) stay OUTSIDE {{text_level}} and never contain {{levelN}}.
3. Wrap every other block (paragraphs, lists, table rows) in {{text_level}}...{{-text_level}}.
4. Inside {{text_level}}, give each paragraph a {{levelN}}: first paragraph at H+1 where H is
   the level of the headline above, list items at H+2.

--- OUTPUT ---
Full text with {{text_level}} wrapping and granular {{levelN}} tags. Nothing else.
""")

_PATCH_SYSTEM = Template("""\
You are a hierarchy auditor (final patch).
TASK: fix structural discontinuities caused by splitting the document into chunks.

--- CONTEXT STATE ---
$state
Previous text snippet: "...$previous..."

--- RULES ---
$continuity
- Ensure all body text is inside {{text_level}}.
- Ensure footnotes ({{footnoteN}}) are OUTSIDE {{text_level}}.
- Close any unclosed tag.

--- OUTPUT ---
Return the full text with corrected hierarchy levels. Nothing else.
""")

_PATCH_START_STATE = (
    "START OF DOCUMENT. There is no previous chunk: treat this as the beginning and "
    "preserve the {{level0}} and level 1 headings found here."
)
_PATCH_START_RULE = "- This is the start: TRUST the existing tags."
_PATCH_CONTINUE_STATE = Template("The PREVIOUS chunk ended at heading level $level.")
_PATCH_CONTINUE_RULE = Template("""\
- If the first heading here is a sibling of the previous section (e.g. "Article 1.15" → "Article 1.16"), it MUST be level $level.
- If it is a child (subsection), it MUST be level $child.
- DO NOT RESET TO LEVEL 1 unless the text clearly starts a new major part.""")

_REPAIR_CLEAN_SYSTEM = """\
You are a proofreader.
GOAL: fix layout and OCR typos in the text provided.
- OUTPUT EVERY SINGLE WORD. DO NOT TRUNCATE.
- Fix broken lines and duplicated words ("the the").
- DO NOT ADD TAGS. Return plain text.
"""

_REPAIR_STRUCTURE_SYSTEM = """\
You are a syntax repair agent for structural tags ({{levelN}}, {{text_level}}, {{footnoteN}}).
- Close unclosed tags.
- Fix malformed tags (remove spaces inside the braces).
- Do not change the content.
"""

_AUDIT_CHECKLISTS: dict[Milestone, str] = {
    Milestone.CLEAN: (
        "1. Paragraph integrity: no breaks in mid-sentence.\n"
        "2. Header isolation: headers separated from body text.\n"
        "3. Artifact removal: no \"Page X\" markers left."
    ),
    Milestone.MACRO: (
        "1. Tagging: major headers tagged with {{levelN}}.\n"
        "2. Hierarchy: levels are logical (level 1 → level 2).\n"
        "3. Syntax: tags are valid ({{level1}}, not {{ level 1 }})."
    ),
    Milestone.MICRO: (
        "1. Containment: all body text inside {{text_level}}.\n"
        "2. Footnotes: {{footnoteN}} blocks OUTSIDE {{text_level}}.\n"
        "3. Depth: body paragraphs carry {{levelN}} tags."
    ),
}

_AUDIT_SYSTEM = Template("""\
You are a structural QA specialist. Analyse the provided text ($stage stage).

--- CHECKLIST ---
$checklist

--- OUTPUT FORMAT ---
Quality score (0-100), status, key issues.
""")

_TRANSLATE_SYSTEM = Template("""\
You are a translator used to verify a structured document.
GOAL: translate the text to $target_lang.
- PRESERVE ALL {{TAGS}} EXACTLY, byte for byte.
- Translate only the content between tags. Keep line breaks.
- Return only the translation.
""")


def build_clean_prompt(language: Optional[str] = None) -> str:
    """Prompt de limpieza con IA (la alternativa al LayoutRestorer determinista)."""
    return _CLEAN_SYSTEM.substitute(language=_language_label(language))


def build_macro_prompt(is_start: bool, language: Optional[str] = None) -> str:
    """
    Titulares. is_start=True solo para el primer chunk de cada archivo:
    es el único que puede llevar el título del documento (level 0).
    """
    title_rule = (
        "This chunk is the START of the document: tag its main title."
        if is_start else
        "This chunk continues the document: do NOT use level 0."
    )
    return _MACRO_SYSTEM.substitute(
        language   = _language_label(language),
        title_rule = title_rule,
    )


def build_micro_prompt(previous_context: str, language: Optional[str] = None) -> str:
    return _MICRO_SYSTEM.substitute(
        language = _language_label(language),
        previous = _snippet(previous_context, _CONTEXT_SNIPPET_CHARS["micro"]),
    )


def build_patch_prompt(previous_context: str, last_level: Optional[int] = None) -> str:
    """
    last_level=None significa "inicio de documento", distinto de
    "continuar en el nivel N del chunk anterior".
    """
    if last_level is None:
        state, continuity = _PATCH_START_STATE, _PATCH_START_RULE
    else:
        state = _PATCH_CONTINUE_STATE.substitute(level=last_level)
        continuity = _PATCH_CONTINUE_RULE.substitute(level=last_level, child=last_level + 1)

    return _PATCH_SYSTEM.substitute(
        state      = state,
        continuity = continuity,
        previous   = _snippet(previous_context, _CONTEXT_SNIPPET_CHARS["patch"]),
    )


def build_repair_prompt(milestone: Milestone) -> str:
    """El texto limpio se corrige sin etiquetas; las etapas etiquetadas, su sintaxis."""
    if milestone == Milestone.CLEAN:
        return _REPAIR_CLEAN_SYSTEM
    return _REPAIR_STRUCTURE_SYSTEM


def build_audit_prompt(milestone: Milestone) -> str:
    # FINAL usa la misma lista que MICRO: mismas etiquetas, jerarquía ya auditada
    checklist = _AUDIT_CHECKLISTS.get(milestone, _AUDIT_CHECKLISTS[Milestone.MICRO])
    return _AUDIT_SYSTEM.substitute(stage=milestone.name.lower(), checklist=checklist)


def build_translate_prompt(target_lang: str = "English") -> str:
    return _TRANSLATE_SYSTEM.substitute(target_lang=target_lang)


# ------------------------------------------------------------------
# Formatters internos
# ------------------------------------------------------------------

def _language_label(language: Optional[str]) -> str:
    if not language or language.lower() in ("auto", "unknown"):
        return _AUTO_LANGUAGE
    return language.upper()


def _snippet(text: str, max_chars: int) -> str:
    """Últimos caracteres del contexto previo, en una sola línea."""
    return (text or "")[-max_chars:].replace("\n", " ")

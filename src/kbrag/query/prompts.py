"""Prompt templates for intent classification and answer synthesis.

Prompts are written in Azerbaijani, the language of the knowledge base.
Each builder returns a single prompt string sent as one user message.
"""

CLASSIFIER_PROMPT = """Sən yalnız mətni təsnif edən sistemsən.
Aşağıdakı mətni dörd kateqoriyadan birinə aid et:
- SMALL_TALK: salamlaşma, təşəkkür, hal-əhval soruşma, qısa söhbət.
- META: köməkçinin rolu və imkanları haqqında sual.
- FIQH_QUESTION: İslam fiqhi, ibadət, halal-haram və şəri hökmlər haqqında sual.
- OUT_OF_SCOPE: bu mövzulardan kənar hər şey (proqramlaşdırma, biznes və s.).

Cavab olaraq YALNIZ bu sözlərdən birini yaz: SMALL_TALK, META, FIQH_QUESTION, OUT_OF_SCOPE.

Mətn: "{text}"
Cavab:"""

_CONTEXT_BLOCK = """--- KONTEKST BAŞLANĞICI ---
{context}
--- KONTEKST SONU ---"""


def build_classifier_prompt(text: str) -> str:
    return CLASSIFIER_PROMPT.format(text=text)


def build_super_strict_prompt(question: str, context: str, no_data_message: str) -> str:
    """Copy-only prompt: the model may only quote the context or give the no-data reply."""
    return f"""DİQQƏT: BU QAYDALAR DƏYİŞMƏZDİR.

Sən yalnız aşağıdakı KONTEKST mətnindən hərfi köçürmə ilə cavab verən sistemsən.

QADAĞANDIR:
1. Öz biliyindən və ya kənar mənbələrdən məlumat əlavə etmək.
2. Cümlələri yenidən yazmaq, ümumiləşdirmək və ya parafraz etmək.
3. Kontekstdə olmayan hər hansı söz və ya cümlə əlavə etmək.
4. Kontekstdə hazır siyahı yoxdursa, addımlar və ya siyahılar yaratmaq.

İCAZƏ VERİLİR:
1. Kontekstdən cümlə və ya paraqrafı olduğu kimi köçürmək.
2. Kontekstdə cavab yoxdursa, yalnız bu mətni qaytarmaq: "{no_data_message}"

{_CONTEXT_BLOCK.format(context=context)}

İstifadəçinin sualı: "{question}"

CAVAB (yalnız kontekstdən köçürülmüş mətn və ya "məlumat yoxdur" mesajı):"""


def build_strict_prompt(question: str, context: str, no_data_message: str) -> str:
    """Context-only prompt that still lets the model rephrase and structure."""
    return f"""Sən aşağıdakı kontekstə əsaslanaraq suallara cavab verən köməkçisən.

QAYDALAR:
- Yalnız kontekstdəki məlumatlardan istifadə et.
- Kontekstdə olmayan heç bir məlumat əlavə etmə.
- Öz ümumi biliklərinə müraciət etmə.
- Kontekstdəki məlumatı aydın izah edə və nömrələnmiş şəkildə təqdim edə bilərsən.

Kontekstdə cavab yoxdursa, yalnız bunu yaz: "{no_data_message}"

{_CONTEXT_BLOCK.format(context=context)}

İstifadəçinin sualı: "{question}"

Kontekstə əsasən cavab:"""


def build_normal_prompt(question: str, context: str) -> str:
    """Context-first prompt that allows general knowledge where the context is thin."""
    return f"""Sən yardımçı bir köməkçisən.

Aşağıdakı kontekstdən istifadəçinin sualına cavab vermək üçün əsas mənbə kimi istifadə et.
Lazım gələrsə ümumi biliklərinlə tamamlaya bilərsən.

{_CONTEXT_BLOCK.format(context=context)}

İstifadəçinin sualı: "{question}"

Cavab:"""


def build_answer_prompt(
    question: str,
    context: str,
    no_data_message: str,
    strict_mode: bool,
    super_strict_mode: bool,
) -> str:
    """Pick the prompt level from the strictness flags.

    Args:
        question: User question
        context: Retrieved context, embedded verbatim
        no_data_message: Exact fallback sentence for unanswerable questions
        strict_mode: Answer only from context
        super_strict_mode: Copy-only answers (requires strict_mode)

    Returns:
        str: Prompt text
    """
    if strict_mode and super_strict_mode:
        return build_super_strict_prompt(question, context, no_data_message)
    if strict_mode:
        return build_strict_prompt(question, context, no_data_message)
    return build_normal_prompt(question, context)


def build_rewrite_prompt(question: str, extract: str) -> str:
    """Ask the model to reorganize an extract into a numbered list without adding facts."""
    return f"""Sən yalnız aşağıdakı MƏNBƏ MƏTN-dən istifadə edərək cavab verən sistemsən.

QADAĞANDIR:
1. Öz biliyindən və ya kənar mənbələrdən heç nə əlavə etmək.
2. Mənbədə olmayan addım, qayda və ya nümunə əlavə etmək.

İCAZƏ VERİLİR:
- Mənbədəki məlumatı oxunaqlı, nömrələnmiş siyahı şəklində təşkil etmək.
- Hər bənd yalnız mənbədəki faktları ehtiva etməlidir.

MƏNBƏ MƏTN:
{extract}

İstifadəçinin sualı: "{question}"

CAVAB (yalnız mənbədən, nömrələnmiş):
1."""

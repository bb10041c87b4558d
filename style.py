"""
style.py — visual style for the bot, and the analysis renderer.

The analysis text from Gemini is markdown-ish: **bold** section labels and
one inline <span class="health-score">Health Score: X/10</span> tag. Both
must come out as formatting, never as literal markup; everything else is
escaped so the model can't inject Telegram formatting.

All text that goes into Telegram messages should be formatted through this
module. MarkdownV2 throughout.
"""
from __future__ import annotations

import re
from typing import Optional

# ── Escape ────────────────────────────────────────────────────────────────────

def esc(text: str) -> str:
    """Escape all MarkdownV2 special characters."""
    for ch in r"\_*[]()~`>#+-=|{}.!":
        text = text.replace(ch, f"\\{ch}")
    return text


# ── Visual constants ──────────────────────────────────────────────────────────

DIV   = "━━━━━━━━━━━━━━━━━━━━━━━━━━"    # thick divider
SDIV  = "┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄┄"    # subtle divider

MESSAGE_LIMIT = 4096
CAPTION_LIMIT = 1024

_MARKUP_RE = re.compile(
    r"""<span\s+class\s*=\s*["']health-score["']\s*>(?P<score>.*?)</span>"""
    r"""|\*\*(?P<bold>.+?)\*\*""",
    re.IGNORECASE | re.DOTALL,
)
_SCORE_RE = re.compile(r"(\d{1,2})\s*/\s*10")


# ══════════════════════════════════════════════════════════════════════════════
# ANALYSIS RENDERING
# ══════════════════════════════════════════════════════════════════════════════

def _score_of(inner: str) -> Optional[int]:
    found = _SCORE_RE.search(inner)
    if found and 1 <= int(found.group(1)) <= 10:
        return int(found.group(1))
    return None


def health_score(text: str) -> Optional[int]:
    """The X of the first health-score tag, or None if absent / out of 1–10."""
    for m in _MARKUP_RE.finditer(text):
        if m.group("score") is not None:
            return _score_of(m.group("score"))
    return None


def score_icon(score: Optional[int]) -> str:
    if score is None:
        return "⚪"
    if score >= 7:
        return "🟢"
    if score >= 4:
        return "🟡"
    return "🔴"


def _render_inline(text: str) -> str:
    out = []
    pos = 0
    for m in _MARKUP_RE.finditer(text):
        out.append(esc(text[pos:m.start()]))
        if m.group("score") is not None:
            inner = m.group("score").strip()
            out.append(f"*{score_icon(_score_of(inner))} {esc(inner)}*")
        else:
            out.append(f"*{esc(m.group('bold'))}*")
        pos = m.end()
    out.append(esc(text[pos:]))
    return "".join(out)


def render_analysis(text: str, limit: int = MESSAGE_LIMIT) -> str:
    """
    Render analysis text as MarkdownV2 no longer than limit.
    Truncation happens on the raw text so escapes and bold pairs stay intact.
    """
    raw = text
    rendered = _render_inline(raw)
    while len(rendered) > limit and raw:
        raw = raw[: int(len(raw) * 0.8)]
        rendered = _render_inline(raw) + "…"
    return rendered


# ══════════════════════════════════════════════════════════════════════════════
# START / HELP
# ══════════════════════════════════════════════════════════════════════════════

def welcome() -> str:
    return (
        f"🥗 *GROCERY SCANNER AI*\n"
        f"{DIV}\n\n"
        f"Take a picture of a product to get an AI\\-powered\n"
        f"nutritional analysis\\.\n\n"
        f"✨  *What I can do*\n"
        f"▸ Identify the food in your photo\n"
        f"▸ Give it a health score from 1 to 10\n"
        f"▸ Suggest a healthier alternative\n"
        f"▸ Keep a history of your past scans\n\n"
        f"{DIV}\n"
        f"_📸 Just send a photo to get started_"
    )


def help_text() -> str:
    return (
        f"📖 *HOW TO USE*\n"
        f"{DIV}\n\n"
        f"*1️⃣  Send a photo*\n"
        f"_Clear, well\\-lit, one product per photo_\n\n"
        f"*2️⃣  Wait for the analysis*\n"
        f"_One scan at a time, new photos are ignored meanwhile_\n\n"
        f"*3️⃣  Review your history*\n"
        f"_/history shows your most recent scans_\n\n"
        f"{DIV}\n"
        f"_Commands: /start · /help · /history_"
    )


# ══════════════════════════════════════════════════════════════════════════════
# PIPELINE STATES
# ══════════════════════════════════════════════════════════════════════════════

def analysis_card(text: str) -> str:
    """Whatever the pipeline currently displays: placeholder, result or failure."""
    header = f"🤖 *AI ANALYSIS*\n{DIV}\n\n"
    return header + render_analysis(text, MESSAGE_LIMIT - len(header))


def busy() -> str:
    return (
        "⏳ *Analysis in progress*\n"
        f"{SDIV}\n"
        "Please wait for the current scan to finish before sending another photo\\."
    )


def persist_warning() -> str:
    return "⚠️ _This scan could not be saved to your history\\. It will be retried with the next scan\\._"


# ══════════════════════════════════════════════════════════════════════════════
# HISTORY
# ══════════════════════════════════════════════════════════════════════════════

def history_header(shown: int, total: int) -> str:
    return (
        f"🗂️ *SCAN HISTORY*\n"
        f"{DIV}\n"
        f"Showing {shown} of {total} scan{'s' if total != 1 else ''}, newest first\\."
    )


def history_caption(record) -> str:
    icon = score_icon(health_score(record.analysis_result))
    header = f"{icon} 🕒 _{esc(record.timestamp)}_\n{SDIV}\n"
    return header + render_analysis(record.analysis_result, CAPTION_LIMIT - len(header))


def history_empty() -> str:
    return "🗂️ *No scans yet*\n_Send a photo to start your history\\._"


def history_cleared() -> str:
    return "🧹 *History cleared\\.*"


# ══════════════════════════════════════════════════════════════════════════════
# ERRORS
# ══════════════════════════════════════════════════════════════════════════════

def not_a_photo() -> str:
    return (
        "📸 *Please send a photo*\n"
        f"{SDIV}\n"
        "I can only analyse images\\. Try /help for tips\\."
    )


def not_admin() -> str:
    return "🔒 _Only admins can do that\\._"

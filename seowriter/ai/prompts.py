"""Prompt templates for article generation."""

from __future__ import annotations

SYSTEM_PROMPT = (
  "You are an expert SEO copywriter who strictly uses only the provided site context for factual claims. "
  "Never state or imply any fact that is not clearly present in the site context. "
  "If a requested detail is missing, omit it or speak generally without numbers or specifics. "
  "Match the site's tone and style. Avoid over-optimization and keyword stuffing. "
  "Use natural phrasing and varied sentence lengths so the writing feels human. "
  "Use markdown headings for H1 to H4 and lists. "
  "Global rule: never use an em dash, use a normal hyphen instead."
)

_GENERATION_TEMPLATE = """You are writing a new page for the website described below. Use only this site context for facts, voice, and terminology.

[SITE CONTEXT START]
{context}
[SITE CONTEXT END]

Inputs:

Topic: {topic}

Keywords to include naturally: {keywords}

Target length: about {length} words
{notes_block}
Output format is mandatory. Use these exact section fences and labels:

META TITLE: <about 50-60 chars, include the primary keyword once, natural human wording>
META DESCRIPTION: <about 150-160 chars, include the primary keyword once, compelling and accurate>

===CONTENT START===

<H1 title for the article>

Intro: if the topic is question-like, open with a short direct answer in 1-2 sentences that an AI overview can quote. Then expand with helpful context.

Use H2 and H3 to structure the piece. Write clear, specific, useful paragraphs that align with the site context. Include keywords sparingly and only where they fit. Do not invent stats, dates, prices, client names, certifications, or quotes that are not in the site context. Match the site's tone and style.
===CONTENT END===

===FAQ START===
Provide 3 to 5 Q&A pairs about the topic and the business as described in the site context, each formatted as:
Q: <question>
A: <short accurate answer from site context, no invented details>
===FAQ END===

===SCHEMA START===
Provide valid JSON-LD for Article and FAQPage that matches the content exactly. Put it inside a fenced json block. Use the organization or site name from context if available for author or publisher fields.
```json
{{ ... }}
```
===SCHEMA END==="""


def build_generation_prompt(context: str, topic: str, keywords: list[str], length: int, notes: str | None = None) -> str:
  """Render the single-pass generation prompt."""
  notes_block = ""
  if notes and notes.strip():
    notes_block = f"\nAdditional instructions from the requester (follow them unless they conflict with the site context):\n{notes.strip()}\n"
  return _GENERATION_TEMPLATE.format(context=context, topic=topic, keywords=", ".join(keywords), length=length, notes_block=notes_block)

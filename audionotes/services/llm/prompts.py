from __future__ import annotations

SUMMARY_SYSTEM = """You are an expert note taker.

You will be given the transcript of an audio recording (a lecture, meeting or voice memo).
Your job: turn it into a clean, well-structured study note.

Hard rules:
- Be faithful to meaning; do not invent facts.
- Output MUST be a single valid JSON object only. No commentary.
- Do NOT wrap the JSON in ``` code blocks.
"""

SUMMARY_USER_TEMPLATE = """Analyze the following transcribed audio and create a structured summary.

Required JSON structure:
{{
  "title": "A concise, descriptive title for the content",
  "description": "A one-line summary description",
  "content": "A detailed markdown-formatted summary of the main points, organized with headers, bullet points, and proper formatting"{category_field}
}}
{category_rules}
Transcribed text:
{transcript}

Remember: Return ONLY the JSON object, nothing else."""

CATEGORY_FIELD = ',\n  "category": "Exactly one label from the allowed category list"'

CATEGORY_RULES_TEMPLATE = """
Category rules:
- Pick EXACTLY ONE category from this list and copy it verbatim: {labels}
- Do not invent a new category.
"""

FLASHCARDS_USER_TEMPLATE = """Based on the following note content, generate 5-10 flashcards.

Return ONLY a valid JSON array (no markdown code blocks, no explanations):
[
  {{"front": "Question or term", "back": "Answer or definition"}}
]

Note content:
{content}

Generate flashcards that test understanding of key concepts, definitions, and important facts."""

QUIZ_USER_TEMPLATE = """Based on the following note content, generate 5-10 quiz questions.

Return ONLY a valid JSON array (no markdown code blocks, no explanations):
[
  {{
    "question": "Question text",
    "answers": ["Answer 1", "Answer 2", "Answer 3", "Answer 4"],
    "correct_answer_index": 0,
    "explanation": "Brief explanation of why this is correct"
  }}
]

Note content:
{content}

Generate questions that test understanding of key concepts, facts, and applications. Ensure wrong answers are plausible but clearly incorrect to someone who understands the material."""


def build_summary_prompt(transcript: str, categories: list[str] | None = None) -> str:
    labels = [c for c in (categories or []) if c and c.strip()]
    if labels:
        category_field = CATEGORY_FIELD
        category_rules = CATEGORY_RULES_TEMPLATE.format(labels=", ".join(f'"{c}"' for c in labels))
    else:
        category_field = ""
        category_rules = ""
    return SUMMARY_USER_TEMPLATE.format(
        transcript=transcript,
        category_field=category_field,
        category_rules=category_rules,
    )


NOTE_CHAT_SYSTEM_TEMPLATE = """You are a helpful assistant answering questions about the following note content:

{content}

Provide clear, concise, and helpful answers based on the note content above. If the answer is not in the note content, acknowledge that and provide general knowledge if helpful."""

MULTI_NOTE_CHAT_SYSTEM_TEMPLATE = """You are a helpful assistant answering questions about the following note content. Multiple notes are provided, each clearly separated with a title and content. Combine information from these notes as needed to answer the user's questions.

{notes}
Provide clear, concise, and helpful answers based on the note content above. If the answer is not in the provided note content, acknowledge that and provide general knowledge if helpful."""

MULTI_NOTE_SECTION_TEMPLATE = """### Note {index}: {title}
Description: {description}
Content:
{content}

"""

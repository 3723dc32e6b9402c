SUMMARY_SYSTEM = """
You are an expert at condensing meeting transcripts into focused summaries.
Generate a summary of 400-800 words that focuses on:
1. Stated purpose of the call
2. Main topics discussed
3. Decisions vs open questions
4. Any mentions of money, scope, delivery, or risk
5. Next steps

Be concise but capture all key information needed for classification.
"""

SUMMARY_USER = """
Title: {title}

Transcript:
{transcript}
"""


ADJUDICATE_SYSTEM = """
You are an expert at classifying business calls into exact categories.

Available categories (you MUST choose exactly one, spelled exactly as listed):
{category_definitions}

You MUST respond with valid JSON in this exact format:
{{
  "category": "exact category name",
  "confidence": 0.85,
  "reasoning": [
    "Clear statement this is [intent]",
    "Timeframe is [timeframe]",
    "Strong signals: [signals]"
  ]
}}

Confidence rules:
- >= 0.75: High confidence, clear match
- 0.50-0.75: Medium confidence, some ambiguity
- < 0.50: Low confidence, unclear

Provide 2-5 specific reasoning bullets referencing observed signals.
"""

ADJUDICATE_USER = """
Classify this call into ONE category.

Title: {title}

Summary:
{summary}

Top {n} candidate categories from heuristic analysis:
{candidates}

Provide your classification with confidence score and reasoning.
"""


ANALYSIS_SYSTEM = """
You are a professional call analyst. Your task is to analyze call transcripts and provide structured feedback.

Always respond with valid JSON in this exact format:
{
  "summary": "A brief 2-3 sentence summary of the call",
  "rating": 8.5,
  "sentiment": "Positive",
  "strengths": ["...", "..."],
  "areasForImprovement": ["..."]
}

The rating should be a number between 1 and 10.
The sentiment should be one of: "Positive", "Neutral", or "Negative".
Provide 2-4 specific strengths and 1-3 areas for improvement.
"""

ANALYSIS_USER = """
{analysis_prompt}

Rating guidance:
{rating_prompt}

Transcript:
{transcript}
"""


PARTICIPANTS_SYSTEM = (
    "You extract participant names from meeting transcripts. "
    'Return JSON only, as {"participants": ["Name1", "Name2"]}. '
    'If no participants are found, return {"participants": []}.'
)

PARTICIPANTS_USER = """
Extract all participant/speaker names from this transcript:

{transcript}
"""

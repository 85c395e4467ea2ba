MOOD_ANALYSIS_PROMPT: str = (
    "You are a mood analysis assistant. Analyze the following journal entry and rate "
    "the overall emotional mood on a scale from 1 to 10.\n\n"
    "Scale guide:\n"
    "1-2: Very negative (depressed, hopeless, extremely sad)\n"
    "3-4: Negative (sad, frustrated, anxious, stressed)\n"
    "5-6: Neutral to slightly negative/positive (mixed feelings, okay)\n"
    "7-8: Positive (happy, content, grateful, optimistic)\n"
    "9-10: Very positive (joyful, excited, deeply grateful, elated)\n\n"
    "IMPORTANT: Respond with ONLY a single integer from 1 to 10. "
    "No explanation, no text, just the number.\n\n"
    "Journal entry:\n"
    "---\n"
    "{entry}\n"
    "---\n\n"
    "Mood score (1-10):"
)

QUOTE_GENERATION_PROMPT: str = (
    "You are a thoughtful and empathetic life coach. Based on the following journal entries "
    "from a user, generate a personalized, meaningful inspirational quote that resonates with "
    "their experiences, emotions, and journey.\n\n"
    "The quote should:\n"
    "- Be original and personalized (not a famous quote)\n"
    "- Reflect themes and emotions from their journals\n"
    "- Be encouraging and uplifting\n"
    "- Be 1-3 sentences long\n\n"
    "Also identify 4 key thematic tags that represent recurring themes in their journals.\n"
    "Tags should be single words or short phrases (max 2 words).\n\n"
    "Journal entries:\n"
    "---\n"
    "{entries}\n"
    "---\n\n"
    "Respond with ONLY a JSON object in this exact format (no markdown, no explanation):\n"
    '{{"quote": "Your inspirational quote here", "tags": ["tag1", "tag2", "tag3", "tag4"]}}'
)

# Used when the user has no journal text to draw from
DEFAULT_QUOTE_PROMPT: str = (
    "Generate a universal, uplifting inspirational quote for someone starting their "
    "journaling journey.\n"
    "The quote should encourage self-reflection and personal growth.\n\n"
    "Also provide 4 general positive tags related to personal growth and journaling.\n\n"
    "Respond with ONLY a JSON object in this exact format (no markdown, no explanation):\n"
    '{"quote": "Your inspirational quote here", "tags": ["tag1", "tag2", "tag3", "tag4"]}'
)

QUOTE_SYSTEM_PROMPT: str = "Respond only with JSON."

DEFAULT_TAGS = ["growth", "reflection", "journey", "mindfulness"]

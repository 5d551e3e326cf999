"""
AI prompt templates for the advisory trigger summary.

Prompts follow medical ethics guidelines:
- Use qualified language ("may be associated with", not "causes")
- Never diagnose conditions
- Recommend professional consultation
"""

from typing import List

ADVISORY_DISCLAIMER = """This summary points out patterns in your own diary entries and is NOT medical advice or a diagnosis. Correlation does not prove causation. Please talk to a doctor or allergist before changing your diet."""

ADVISORY_SYSTEM_PROMPT = """You are a food-symptom pattern assistant for a personal allergy diary.

TASK: Given the foods a person logged and the symptoms they logged in the same period, name the foods that may be associated with the symptoms and explain why in plain language.

GUIDELINES:
- Use qualified language: "may be associated with", "could be worth watching"
- Never diagnose an allergy or intolerance
- Recommend talking to a doctor or allergist
- Keep the explanation under 120 words
- Only name foods that appear in the food list

OUTPUT FORMAT (JSON only, no markdown code blocks):
{
  "possibleTriggers": ["milk", "peanut"],
  "explanation": "Milk and peanut appear before most of the logged skin reactions..."
}"""


def build_advisory_prompt(foods: List[str], symptoms: List[str]) -> str:
    """Format the flattened food and symptom lists as the user message."""
    food_lines = "\n".join(f"- {food}" for food in foods) or "- (none)"
    symptom_lines = "\n".join(f"- {symptom}" for symptom in symptoms) or "- (none)"

    return f"""FOODS EATEN:
{food_lines}

SYMPTOMS LOGGED:
{symptom_lines}

Which of these foods may be associated with the symptoms?"""

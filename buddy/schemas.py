"""
Structured JSON schemas for tutor replies and lessons.

This module documents the JSON structure the LLM must return. The client
parses these shapes into the dataclasses in buddy.models.
"""

WORD_SCHEMA = """
{
  "kannada": "The word or phrase in Kannada script",
  "transliteration": "The same word in English/Latin characters",
  "english": "English meaning",
  "category": "Category of the word (e.g. Greetings, Food, Verbs)"
}
"kannada", "transliteration" and "english" are REQUIRED.
"""

CHAT_RESPONSE_SCHEMA = """
Return ONLY a JSON object:
{
  "reply": "Conversational response in Kannada (with English helper text for beginners)",
  "translation": "Full English translation of the Kannada response",
  "nextQuestion": "A follow-up question to keep the learner talking",
  "vocabulary": [ <word>, ... ]   // 3-5 key words used in the reply
}
Each <word> follows this structure:
""" + WORD_SCHEMA

LESSON_RESPONSE_SCHEMA = """
Return ONLY a JSON object:
{
  "title": "Short lesson title",
  "concept": "Brief description of the grammatical concept or topic",
  "explanation": "Clear, simple explanation in English suitable for the learner's level",
  "examples": [ <word>, <word>, <word> ],   // 3 phrases demonstrating the concept
  "quizQuestion": {
    "question": "A question the learner answers OUT LOUD",
    "options": ["Option 1", "Option 2", "Option 3"],
    "correctAnswer": "The correct answer as the learner would say it",
    "explanation": "Why this is the correct answer"
  }
}
Each <word> follows this structure:
""" + WORD_SCHEMA

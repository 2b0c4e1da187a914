"""Prompt templates for every study/chat operation.

All builders are pure: the same inputs always produce the same messages.
"""

import json

VALIDATE_CLASS_SYSTEM = (
    "You are a helpful educational assistant. Your task is to determine if the given text "
    "represents a valid academic subject, class, or topic that someone could study. "
    'Respond with ONLY "VALID" if it is a real academic subject, or "INVALID: [brief reason]" '
    "if it is not."
)

FLASHCARDS_SYSTEM = (
    "You are an expert educational content creator. Generate high-quality flashcards for studying. "
    'Return ONLY valid JSON in this exact format: {"flashcards": [{"question": "...", "answer": "..."}]}'
)

QUIZ_SYSTEM = (
    "You are an expert quiz creator. Generate multiple choice questions with hints. "
    "Return ONLY valid JSON in this exact format: "
    '{"questions": [{"question": "...", "options": ["A) ...", "B) ...", "C) ...", "D) ..."], '
    '"correct": 0, "hint": "...", "explanation": "..."}]}. '
    'The "correct" field should be the index (0-3) of the correct answer.'
)

TEST_SYSTEM = (
    "You are an expert test creator. Generate comprehensive test questions. "
    "Return ONLY valid JSON in this exact format: "
    '{"questions": [{"question": "...", "type": "short_answer", "correctAnswer": "...", "points": 10}]}. '
    'Mix of question types allowed: "multiple_choice" (with "options" array) or "short_answer".'
)

GRADE_SYSTEM = (
    "You are an expert grader. Grade each answer and provide feedback. "
    "Return ONLY valid JSON in this format: "
    '{"results": [{"questionIndex": 0, "pointsEarned": 10, "pointsPossible": 10, "feedback": "..."}], '
    '"totalScore": 100, "totalPossible": 100}'
)

CHAT_SYSTEM = (
    "You are a friendly and knowledgeable study assistant. Help the student understand "
    "their course material: explain concepts clearly, give short examples, and ask a "
    "follow-up question when it helps them check their understanding. Keep answers concise."
)


def _focus(topic: str) -> str:
    return f" focusing on {topic}" if topic else ""


def validate_class_messages(class_name: str) -> list[dict]:
    return [
        {"role": "system", "content": VALIDATE_CLASS_SYSTEM},
        {
            "role": "user",
            "content": (
                f'Is "{class_name}" a valid academic subject or class? '
                'Respond with ONLY "VALID" or "INVALID: [reason]"'
            ),
        },
    ]


def flashcards_messages(class_name: str, topic: str, count: int) -> list[dict]:
    return [
        {"role": "system", "content": FLASHCARDS_SYSTEM},
        {
            "role": "user",
            "content": (
                f"Create {count} flashcards for {class_name}{_focus(topic)}. "
                "Each flashcard should have a clear question and a concise answer. "
                "Return ONLY the JSON format specified."
            ),
        },
    ]


def quiz_messages(class_name: str, topic: str, count: int) -> list[dict]:
    return [
        {"role": "system", "content": QUIZ_SYSTEM},
        {
            "role": "user",
            "content": (
                f"Create {count} multiple choice questions for {class_name}{_focus(topic)}. "
                "Each question should have 4 options (A-D), indicate which is correct, "
                "include a helpful hint, and provide an explanation. "
                "Return ONLY the JSON format specified."
            ),
        },
    ]


def graded_test_messages(class_name: str, topic: str, count: int) -> list[dict]:
    return [
        {"role": "system", "content": TEST_SYSTEM},
        {
            "role": "user",
            "content": (
                f"Create {count} test questions for {class_name}{_focus(topic)}. "
                "Include a mix of multiple choice and short answer questions. "
                "Each question should have a point value and correct answer. "
                "Return ONLY the JSON format specified."
            ),
        },
    ]


def grade_messages(records: list[dict]) -> list[dict]:
    return [
        {"role": "system", "content": GRADE_SYSTEM},
        {
            "role": "user",
            "content": (
                f"Grade these test answers:\n\n{json.dumps(records, indent=2)}\n\n"
                "Provide fair grading with constructive feedback. "
                "Return ONLY the JSON format specified."
            ),
        },
    ]


def chat_messages(history: list[dict], message: str) -> list[dict]:
    messages = [{"role": "system", "content": CHAT_SYSTEM}]
    for turn in history:
        role = "user" if turn.get("role") == "user" else "assistant"
        messages.append({"role": role, "content": turn.get("content", "")})
    messages.append({"role": "user", "content": message})
    return messages

"""
Interview prompt templates and generation.

This module contains all the prompt templates used throughout the interview system,
keeping them separate from the business logic for easier maintenance and editing.
"""

from typing import Dict, Optional
import json


class InterviewPrompts:
    """Collection of all interview-related prompts."""

    @staticmethod
    def question_generation(
        job_context: str,
        interview_type_guidance: str,
        difficulty_guidance: str,
        question_count: int,
        language_instruction: str,
        resume_text: Optional[str] = None,
    ) -> str:
        """Prompt for generating the interview's question set."""
        resume_block = ""
        if resume_text and resume_text.strip():
            resume_block = f"""
Candidate resume (tailor questions to this background where relevant):
{resume_text.strip()}
"""
        return f"""
You are an experienced interviewer preparing a mock interview.

{job_context}
{resume_block}
Interview style: {interview_type_guidance}
Difficulty: {difficulty_guidance}

Write exactly {question_count} interview questions, each with a strong model answer.
{language_instruction}

Return a JSON array where each element has exactly these fields:
[{{"question":"<the question>","answer":"<a model answer, 3-6 sentences>"}}]
        """.strip()

    @staticmethod
    def answer_scoring(
        question: str,
        model_answer: str,
        user_answer: str,
        difficulty_guidance: str,
        language_instruction: str,
    ) -> str:
        """Prompt for rating one answer with structured feedback."""
        return f"""
You are grading a candidate's answer in a mock interview.

Question: {json.dumps(question, ensure_ascii=False)}
Reference answer: {json.dumps(model_answer, ensure_ascii=False)}
Candidate answer: {json.dumps(user_answer, ensure_ascii=False)}
Expected level: {difficulty_guidance}

Rate the answer from 1 (poor) to 5 (excellent), then score each competency from 1 to 5.
{language_instruction}

Return a JSON object with exactly these fields:
{{
    "rating": <int 1..5>,
    "competencies": {{
        "technicalKnowledge": <int 1..5>,
        "communicationClarity": <int 1..5>,
        "problemSolving": <int 1..5>,
        "relevance": <int 1..5>
    }},
    "strengths": "<what the candidate did well, 1-3 sentences>",
    "improvements": "<what was missing or wrong, 1-3 sentences>",
    "tip": "<one concrete, actionable tip>",
    "suggestedAnswer": "<an improved version of the candidate's answer>"
}}
        """.strip()

    @staticmethod
    def follow_up(
        question: str,
        model_answer: str,
        user_answer: str,
        language_instruction: str,
    ) -> str:
        """Prompt for one probing follow-up question."""
        return f"""
You are a mock interviewer. The candidate just answered a question.

Question: {json.dumps(question, ensure_ascii=False)}
Reference answer: {json.dumps(model_answer, ensure_ascii=False)}
Candidate answer: {json.dumps(user_answer, ensure_ascii=False)}

Ask ONE short follow-up question that digs deeper into the candidate's answer:
a gap they left, a claim worth testing, or a concrete example they should give.
{language_instruction}

Return a JSON object: {{"followUpQuestion":"<the follow-up question>"}}
        """.strip()

    @staticmethod
    def interview_type_guidance() -> Dict[str, str]:
        return {
            "general": "A balanced mix of background, behavioral and role-specific questions.",
            "behavioral": "Behavioral questions the candidate should answer in STAR format (Situation, Task, Action, Result).",
            "technical": "Technical questions on concepts, tools and problem solving for the role.",
            "system-design": "System design questions about architecture, scalability and trade-offs.",
        }

    @staticmethod
    def difficulty_guidance() -> Dict[str, str]:
        return {
            "junior": "Junior level: fundamentals and learning ability.",
            "mid": "Mid level: practical experience and independent ownership.",
            "senior": "Senior level: depth, trade-offs, leadership and impact.",
        }

    @staticmethod
    def language_instructions() -> Dict[str, str]:
        return {
            "en": "Write all text in English.",
            "ko": "Write all text in Korean (한국어). Keep JSON field names in English.",
        }


class PromptFormatter:
    """Helper class for formatting and customizing prompts."""

    @staticmethod
    def format_job_context(job_position: str, job_desc: str = "", job_experience: str = "",
                           reference_content: Optional[str] = None) -> str:
        """Describe the job, or the pasted reference material, for the generation prompt."""
        lines = [f"Job position: {job_position}"]
        if reference_content and reference_content.strip():
            lines.append("Reference material provided by the candidate "
                         "(base the questions on this content):")
            lines.append(reference_content.strip())
            return "\n".join(lines)

        if job_desc.strip():
            lines.append(f"Job description / tech stack: {job_desc.strip()}")
        if job_experience.strip():
            lines.append(f"Years of experience: {job_experience.strip()}")
        return "\n".join(lines)

    @staticmethod
    def language_instruction(language: str) -> str:
        instructions = InterviewPrompts.language_instructions()
        return instructions.get(language, instructions["en"])

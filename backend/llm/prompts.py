"""
Prompt templates and the local question bank.
The prompt is designed to:
1. Prevent chain-of-thought leaking
2. Produce exactly six questions in a fixed difficulty order
3. Return clean, parseable JSON
"""
from typing import Optional

from models.schemas import CandidateProfile


class Prompts:
    """Collection of question generation prompts."""

    @staticmethod
    def candidate_intro(profile: CandidateProfile) -> str:
        """Identity lines for the candidate, skipping unknown fields."""
        lines = [
            f"Candidate: {profile.name}" if profile.name else None,
            f"Email: {profile.email}" if profile.email else None,
            f"Phone: {profile.phone}" if profile.phone else None,
        ]
        return "\n".join(line for line in lines if line)

    @staticmethod
    def generate_questions(profile: CandidateProfile, resume_text: Optional[str], snippet_chars: int) -> str:
        """Prompt for the six timed interview questions."""
        intro = Prompts.candidate_intro(profile)
        snippet = (resume_text or "")[:snippet_chars]

        prompt = f"""You are preparing a timed technical interview for a full-stack React/Node developer.

CRITICAL RULES:
1. Do NOT include any thinking, reasoning, or commentary.
2. Respond with ONLY a JSON object.
3. Questions must be concise and answerable within two minutes.

Resume snippet:
\"\"\"
{snippet}
\"\"\"

Return a JSON object with a "questions" array containing exactly 6 items ordered by difficulty: two easy, two medium, two hard.
Each item must be an object with keys: "prompt" (string question), "difficulty" (easy|medium|hard) and "expectedKeywords" (array of 3-5 keywords).
The questions must be grounded in React, Node.js, TypeScript, system design, or web performance.

JSON:"""

        return f"{intro}\n\n{prompt}" if intro else prompt


# Local question bank used when generation fails
FALLBACK_QUESTIONS = {
    "easy": [
        {
            "prompt": "What is the difference between null and undefined in JavaScript?",
            "expected_keywords": ["null", "undefined", "type", "value", "undefined variable"],
        },
        {
            "prompt": "Explain how the virtual DOM works in React.",
            "expected_keywords": ["virtual DOM", "diffing", "render", "ReactDOM", "performance"],
        },
        {
            "prompt": "What is the purpose of package-lock.json in Node.js?",
            "expected_keywords": ["dependencies", "version locking", "npm", "package"],
        },
        {
            "prompt": "What are React props and how are they used?",
            "expected_keywords": ["props", "component", "data flow", "immutable"],
        },
    ],
    "medium": [
        {
            "prompt": "How would you handle form validation in a React application?",
            "expected_keywords": ["form validation", "state", "libraries", "Formik", "Yup"],
        },
        {
            "prompt": "Describe a caching strategy for improving API performance.",
            "expected_keywords": ["cache", "memory", "Redis", "performance", "expiry"],
        },
        {
            "prompt": "How would you design error handling in a microservices architecture?",
            "expected_keywords": ["error handling", "logging", "retry", "circuit breaker", "monitoring"],
        },
        {
            "prompt": "Explain the role of React Context API and when to use it.",
            "expected_keywords": ["Context API", "state management", "props drilling", "provider", "consumer"],
        },
    ],
    "hard": [
        {
            "prompt": "Design a scalable API rate limiting solution for a Node.js application.",
            "expected_keywords": ["rate limiting", "Redis", "tokens", "scalability", "API gateway"],
        },
        {
            "prompt": "How would you implement server-side rendering (SSR) for a React application?",
            "expected_keywords": ["SSR", "Next.js", "performance", "SEO", "hydration"],
        },
        {
            "prompt": "Describe how you would build a real-time chat application using Node.js and WebSockets.",
            "expected_keywords": ["WebSocket", "socket.io", "real-time", "Node.js", "scaling"],
        },
        {
            "prompt": "Explain your approach to migrating a monolithic Node.js app to microservices.",
            "expected_keywords": ["microservices", "monolith", "docker", "Kubernetes", "scalability"],
        },
    ],
}

"""AI assistant backed by Google Gemini, plus keyword-based content helpers.

The Gemini call is the only part that leaves the process. Everything else in
this module is deterministic string matching, so it works without an API key.
"""
import logging
from typing import Iterable, List, Optional

from google import genai

from .models import Post, PostAnalysis

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a helpful programming assistant for a social platform for IT professionals.
Your responses should be:
- Practical and actionable
- Include code examples when relevant
- Be encouraging and supportive
- Add relevant hashtags at the end
- Keep responses concise but informative
- Focus on best practices and modern approaches

User question: {prompt}"""

FALLBACK_SUGGESTION = """I'm here to help with your programming questions! Could you provide a bit more detail about what you're working on? I can assist with:

- Code debugging and optimization
- Best practices and design patterns
- Learning new technologies
- Project architecture advice

#Programming #Help #CodingSupport"""

POSITIVE_WORDS = ["good", "great", "awesome", "excellent", "love", "amazing", "perfect", "best"]
NEGATIVE_WORDS = ["bad", "terrible", "awful", "hate", "worst", "problem", "issue", "bug"]

TECH_KEYWORDS = [
    "javascript", "react", "python", "node", "css", "html", "typescript",
    "vue", "angular", "backend", "frontend", "database", "api", "git",
]

CONTENT_IDEAS = [
    "Share a code snippet that solved a tricky problem",
    "Write about a new technology you're learning",
    "Discuss best practices in your favorite programming language",
    "Share a debugging story and what you learned",
    "Review a tool or library you've been using",
    "Explain a complex concept in simple terms",
    "Share your development environment setup",
    "Discuss the pros and cons of different frameworks",
    "Write about a project you're working on",
    "Share tips for junior developers",
]

SHORT_POST_LENGTH = 50
RECOMMENDATIONS_LIMIT = 5


class AiAssistant:
    """Chat-style coding help through the Gemini API.

    Attributes:
        model (str): Gemini model name.
        client: A ``google.genai.Client``; ``None`` when no API key is configured,
            in which case every suggestion is the fallback answer.
    """

    def __init__(self, api_key: Optional[str] = None, model: str = "gemini-1.5-flash-latest", client=None) -> None:
        self.model = model
        self.client = client
        if self.client is None and api_key:
            self.client = genai.Client(api_key=api_key)

    async def generate_suggestion(self, prompt: str) -> str:
        if self.client is None:
            logger.warning("Gemini API key is not configured, returning the fallback suggestion")
            return FALLBACK_SUGGESTION

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=SYSTEM_PROMPT.format(prompt=prompt),
            )
        except Exception:
            logger.exception("Error calling Gemini API")
            return FALLBACK_SUGGESTION

        return response.text or FALLBACK_SUGGESTION


def analyze_post(content: str) -> PostAnalysis:
    lower_content = content.lower()

    positive = sum(1 for word in POSITIVE_WORDS if word in lower_content)
    negative = sum(1 for word in NEGATIVE_WORDS if word in lower_content)
    if positive > negative:
        sentiment = "positive"
    elif negative > positive:
        sentiment = "negative"
    else:
        sentiment = "neutral"

    topics = [keyword for keyword in TECH_KEYWORDS if keyword in lower_content]

    suggestions = []
    if len(content) < SHORT_POST_LENGTH:
        suggestions.append("Consider adding more details to make your post more engaging")
    if "#" not in content:
        suggestions.append("Add relevant hashtags to increase visibility")
    if topics:
        suggestions.append(f"Great tech content! Consider sharing code examples for {topics[0]}")

    return PostAnalysis(sentiment=sentiment, topics=topics, suggestions=suggestions)


def generate_content_ideas(topics: Iterable[str] = (), count: int = 5) -> List[str]:
    ideas = [f"Share what you've learned recently about {topic}" for topic in topics if topic]
    ideas.extend(CONTENT_IDEAS)
    return ideas[:max(count, 0)]


def get_ai_recommendations(
    interests: Iterable[str],
    posts: Iterable[Post],
    limit: int = RECOMMENDATIONS_LIMIT,
) -> List[Post]:
    """Pick the posts whose text or tags mention one of ``interests``."""
    interests = [interest.lower().lstrip('#') for interest in interests if interest]
    recommended = []
    for post in posts:
        haystack = " ".join([post.content, *post.tags]).lower()
        match = next((interest for interest in interests if interest in haystack), None)
        if match is None:
            continue
        recommended.append(post.model_copy(update={
            "is_ai_recommended": True,
            "ai_recommendation_reason": f"Matches your interest in #{match}",
        }))
        if len(recommended) >= limit:
            break
    return recommended

"""
Engagement insights for a prospect.

Recency drives the health bucket, risk level and engagement score; the
narrative comes from the text-generation collaborator and its wording sets
the sentiment.
"""

from dataclasses import asdict, dataclass
from datetime import UTC, date, datetime

from zlatko.infrastructure.observability.logging import get_logger
from zlatko.services.openai_service import OpenAIService, openai_service

logger = get_logger(__name__)

DEFAULT_RECOMMENDED_ACTION = "Schedule follow-up call"

POSITIVE_KEYWORDS = ("engaged", "strong", "positive")
NEGATIVE_KEYWORDS = ("risk", "concern", "declining")

INSIGHTS_PROMPT = """You are a B2B sales AI assistant analyzing prospect engagement.

Prospect Details:
- Company: {company}
- Days Since Last Contact: {days}
- Health Status: {health}
- Deal Status: {status}
- Deal Value: {deal_value}
- Product Interest: {product_type}
- Next Planned Action: {next_action}
- Last Activity: {last_activity}

Provide a brief analysis (2-3 sentences) covering:
1. Current engagement level and risk assessment
2. Recommended next action
3. Best approach or talking points

Keep it concise and actionable. Write in a professional but friendly tone."""


class InsightsError(Exception):
    """Raised when the insight narrative cannot be generated."""

    def __init__(self, message: str, prospect_id: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.prospect_id = prospect_id
        self.recoverable = recoverable


@dataclass(slots=True)
class InsightsInput:
    company: str | None
    last_contact_date: date | None
    status: str | None = None
    deal_value: float | None = None
    product_type: str | None = None
    next_action: str | None = None
    last_activity: str | None = None


@dataclass(slots=True)
class EngagementInsights:
    insights: str
    sentiment: str
    risk_level: str
    engagement_score: int
    recommended_action: str
    health: str
    days_since_contact: int | None

    def to_dict(self) -> dict:
        return asdict(self)


def days_since(last_contact: date | None, today: date) -> int | None:
    if last_contact is None:
        return None
    return max(0, (today - last_contact).days)


def classify_health(days: int | None) -> str:
    """Never-contacted prospects are treated as Frozen."""
    if days is None or days > 60:
        return "Frozen"
    if days > 30:
        return "Cold"
    if days > 14:
        return "Cooling"
    return "Active"


def risk_level_for(health: str) -> str:
    if health in ("Frozen", "Cold"):
        return "high"
    if health == "Cooling":
        return "medium"
    return "low"


def engagement_score(days: int | None) -> int:
    if days is None:
        return 0
    return max(0, 100 - days * 2)


def detect_sentiment(text: str) -> str:
    lowered = text.lower()
    if any(word in lowered for word in POSITIVE_KEYWORDS):
        return "positive"
    if any(word in lowered for word in NEGATIVE_KEYWORDS):
        return "negative"
    return "neutral"


def _format_deal_value(value: float | None) -> str:
    if not value:
        return "Not specified"
    return f"€{value:,.0f}"


class InsightsService:
    def __init__(self, generator: OpenAIService | None = None):
        self.generator = generator or openai_service

    async def generate_insights(
        self, data: InsightsInput, prospect_id: str | None = None, today: date | None = None
    ) -> EngagementInsights:
        """
        Raises:
            InsightsError: If the generator fails
        """
        today = today or datetime.now(UTC).date()
        days = days_since(data.last_contact_date, today)
        health = classify_health(days)

        prompt = INSIGHTS_PROMPT.format(
            company=data.company or "Unknown",
            days=days if days is not None else "never contacted",
            health=health,
            status=data.status or "Not specified",
            deal_value=_format_deal_value(data.deal_value),
            product_type=data.product_type or "Not specified",
            next_action=data.next_action or "None",
            last_activity=data.last_activity or "No recent activity",
        )

        try:
            text = await self.generator.generate(prompt)
        except Exception as e:
            logger.error("Insight generation failed", prospect_id=prospect_id, error=str(e))
            raise InsightsError(f"Failed to generate insights: {e}", prospect_id) from e

        return EngagementInsights(
            insights=text,
            sentiment=detect_sentiment(text),
            risk_level=risk_level_for(health),
            engagement_score=engagement_score(days),
            recommended_action=data.next_action or DEFAULT_RECOMMENDED_ACTION,
            health=health,
            days_since_contact=days,
        )


insights_service = InsightsService()

"""
OpenAI Service
Text-generation collaborator: email summaries, engagement insights and
structured drafts over the chat completions API.
"""

import asyncio

import openai
from openai import AsyncOpenAI

from zlatko.config import settings
from zlatko.infrastructure.observability.logging import get_logger
from zlatko.services.generated_text import GeneratedText, parse_generated_text

logger = get_logger(__name__)

SUMMARY_PROMPT_TEMPLATE = (
    "Summarize this email in 2-3 concise sentences, focusing on key action items, "
    "decisions, and important information:\n\n"
    "Subject: {subject}\n\n"
    "Body: {body}\n\n"
    "Provide a brief summary:"
)


class OpenAIServiceError(Exception):
    """Raised when a generation request fails."""

    def __init__(self, message: str, api_error: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.api_error = api_error
        self.recoverable = recoverable


class OpenAIService:
    """
    Chat-completions wrapper with the retry policy used across the backend:
    rate limits back off exponentially, timeouts and 5xx retry, 4xx do not.
    """

    def __init__(self, client: AsyncOpenAI | None = None):
        self.client = client

    def _get_client(self) -> AsyncOpenAI:
        if self.client is None:
            if not settings.OPENAI_API_KEY:
                raise OpenAIServiceError(
                    "OPENAI_API_KEY not configured in settings", recoverable=False
                )
            self.client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.OPENAI_TIMEOUT_SECONDS,
                max_retries=0,
            )
            logger.info("OpenAI client initialized", model=settings.OPENAI_MODEL)
        return self.client

    async def generate(
        self,
        prompt: str,
        system_message: str | None = None,
        max_tokens: int | None = None,
    ) -> str:
        """
        Run a completion and return the stripped text.

        Raises:
            OpenAIServiceError: If every attempt fails or the reply is empty
        """
        client = self._get_client()
        messages = []
        if system_message:
            messages.append({"role": "system", "content": system_message})
        messages.append({"role": "user", "content": prompt})

        last_error: Exception | None = None
        max_retries = settings.OPENAI_MAX_RETRIES

        for attempt in range(max_retries):
            try:
                response = await client.chat.completions.create(
                    model=settings.OPENAI_MODEL,
                    messages=messages,
                    max_tokens=max_tokens or settings.OPENAI_MAX_TOKENS,
                    temperature=settings.OPENAI_TEMPERATURE,
                )

                if not response.choices or not response.choices[0].message.content:
                    raise OpenAIServiceError("Empty response from OpenAI API")

                result = response.choices[0].message.content.strip()
                logger.debug(
                    "OpenAI API call successful",
                    attempt=attempt + 1,
                    response_length=len(result),
                    usage_tokens=response.usage.total_tokens if response.usage else 0,
                )
                return result

            except openai.RateLimitError as e:
                last_error = e
                wait_time = min(2**attempt, 30)
                logger.warning(
                    "OpenAI rate limit hit, retrying",
                    attempt=attempt + 1,
                    wait_time=wait_time,
                    error=str(e),
                )
                if attempt < max_retries - 1:
                    await asyncio.sleep(wait_time)

            except openai.APITimeoutError as e:
                last_error = e
                logger.warning("OpenAI API timeout, retrying", attempt=attempt + 1, error=str(e))

            except openai.APIStatusError as e:
                last_error = e
                if 400 <= e.status_code < 500:
                    logger.error("OpenAI client error (not retrying)", error=str(e))
                    break
                logger.warning("OpenAI API error, retrying", attempt=attempt + 1, error=str(e))

            except (openai.APIError, OpenAIServiceError) as e:
                last_error = e
                logger.warning("OpenAI API error, retrying", attempt=attempt + 1, error=str(e))

        logger.error(
            "OpenAI API call failed after all retries",
            max_retries=max_retries,
            final_error=str(last_error),
        )
        raise OpenAIServiceError(
            f"OpenAI API failed after {max_retries} attempts",
            api_error=str(last_error),
        ) from last_error

    async def summarize_email(self, subject: str, body: str) -> str:
        """
        Two-to-three sentence summary of an email.

        The body is truncated before prompting. Failures yield "" so an
        import never depends on the generator being available.
        """
        prompt = SUMMARY_PROMPT_TEMPLATE.format(
            subject=subject, body=body[: settings.SUMMARY_BODY_MAX_CHARS]
        )
        try:
            return await self.generate(prompt, max_tokens=150)
        except OpenAIServiceError as e:
            logger.warning("Email summary unavailable", error=str(e))
            return ""

    async def generate_structured(
        self, prompt: str, system_message: str | None = None
    ) -> GeneratedText:
        """Generate text expected to carry a subject/body draft and tag the result."""
        raw = await self.generate(prompt, system_message=system_message)
        return parse_generated_text(raw)


openai_service = OpenAIService()


async def summarize_email(subject: str, body: str) -> str:
    return await openai_service.summarize_email(subject, body)

import logging
from typing import Optional

from openai import AsyncOpenAI

from app import config

logger = logging.getLogger(__name__)


class LLMService:
    """
    Thin wrapper around an OpenAI-compatible chat completions endpoint.
    Requests are bounded by a timeout and never retried.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        api_key = api_key or config.LLM_API_KEY
        if not api_key:
            raise ValueError("LLM_API_KEY not found!")

        self.model = model or config.LLM_MODEL_NAME
        self.client = AsyncOpenAI(
            base_url=base_url or config.LLM_BASE_URL,
            api_key=api_key,
            timeout=timeout or config.LLM_TIMEOUT_SECONDS,
            max_retries=0,
        )

    async def generate_json(self, system: str, prompt: str, schema: dict, schema_name: str = "response") -> str:
        """
        Asks the model for a JSON document constrained to `schema`.

        :param system: System instruction
        :param prompt: User prompt
        :param schema: JSON Schema the answer must follow
        :return: Raw text of the answer, parsing is up to the caller
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": schema_name, "schema": schema},
                },
                temperature=config.LLM_TEMPERATURE,
                max_tokens=config.LLM_MAX_TOKENS,
            )
        except Exception as e:
            logger.error(f"Generation failed: {e}")
            raise

        answer = response.choices[0].message.content
        if response.usage is not None:
            logger.info(f"LLM answered ({response.usage.total_tokens} tokens)")
        if not answer:
            raise ValueError("LLM returned an empty answer")
        return answer

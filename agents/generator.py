"""Text generation client shared by every pipeline stage.

One request in, one completion out. The model is chosen by a profile:

    DEFAULT     selection, extraction, synthesis, one-shot summaries
    PERMISSIVE  synthesis with the permissive ('sweary') style

Model strings use the PydanticAI 'provider:model' form. A string of the
form 'openai:<model>@<base_url>' selects a local OpenAI-compatible server
(Ollama, llama.cpp, MLX); those are called directly through the OpenAI
client with streaming disabled, since small local models handle a single
plain chat message best. Every other string goes through a PydanticAI
agent with plain-text output.

All failures, including timeouts and empty completions, surface as
GenerationError.
"""

import asyncio
import logging
from enum import Enum
from typing import Protocol

from openai import AsyncOpenAI
from pydantic_ai import Agent

from config import Config
from errors import GenerationError

logger = logging.getLogger(__name__)


class Profile(str, Enum):
    """Generation profile, mapped to a configured model."""

    DEFAULT = "default"
    PERMISSIVE = "permissive"


class Generator(Protocol):
    """Anything that can answer a single prompt (GenerationClient or a test fake)."""

    async def generate(
        self,
        prompt: str,
        system: str | None = None,
        profile: Profile = Profile.DEFAULT,
        timeout: float | None = None,
    ) -> str: ...


def _parse_local_model(model_str: str) -> tuple[str, str] | None:
    """Parse local model string into (model_name, base_url) or None if not local."""
    if model_str.startswith("openai:") and "@" in model_str:
        rest = model_str[7:]  # Remove "openai:" prefix
        model_name, base_url = rest.split("@", 1)
        return model_name, base_url
    return None


class GenerationClient:
    """Sends single, non-streaming generation requests.

    Example:
        >>> client = GenerationClient(config)
        >>> text = await client.generate("Summarize: ...", timeout=300)
        >>> text = await client.generate(prompt, system="...", profile=Profile.PERMISSIVE)
    """

    def __init__(self, config: Config):
        """Initialize the client.

        Args:
            config: Application configuration with model settings
        """
        self.config = config
        self._models = {
            Profile.DEFAULT: config.default_model,
            Profile.PERMISSIVE: config.permissive_model,
        }
        # One OpenAI client per local server, one agent per (model, system prompt)
        self._clients: dict[str, AsyncOpenAI] = {}
        self._agents: dict[tuple[str, str], Agent] = {}

    def _client(self, base_url: str) -> AsyncOpenAI:
        if base_url not in self._clients:
            logger.info("Using local model server | base_url=%s", base_url)
            # Local servers don't need authentication - use placeholder
            self._clients[base_url] = AsyncOpenAI(base_url=base_url, api_key="local-model")
        return self._clients[base_url]

    def _agent(self, model_str: str, system: str) -> Agent:
        key = (model_str, system)
        if key not in self._agents:
            self._agents[key] = Agent(
                model_str,
                output_type=str,
                system_prompt=system or (),
            )
        return self._agents[key]

    async def _generate_local(self, model_name: str, base_url: str, prompt: str, system: str | None) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        resp = await self._client(base_url).chat.completions.create(
            model=model_name,
            messages=messages,
            stream=False,
        )
        if not resp.choices:
            return ""
        return resp.choices[0].message.content or ""

    async def _generate_remote(self, model_str: str, prompt: str, system: str | None) -> str:
        result = await self._agent(model_str, system or "").run(prompt)
        usage = result.usage()
        logger.debug(
            "Generation usage | model=%s requests=%d tokens=%d",
            model_str,
            usage.requests,
            usage.total_tokens or 0,
        )
        return result.output

    async def generate(
        self,
        prompt: str,
        system: str | None = None,
        profile: Profile = Profile.DEFAULT,
        timeout: float | None = None,
    ) -> str:
        """Generate a completion for a single prompt.

        Args:
            prompt: User prompt
            system: Optional system directive
            profile: Selects the model
            timeout: Seconds before the call is abandoned (None = pipeline timeout)

        Returns:
            The completion text (never empty)

        Raises:
            GenerationError: On any failure, timeout or empty completion
        """
        model_str = self._models[profile]
        if timeout is None:
            timeout = self.config.pipeline_timeout_seconds
        local = _parse_local_model(model_str)

        try:
            async with asyncio.timeout(timeout):
                if local:
                    text = await self._generate_local(local[0], local[1], prompt, system)
                else:
                    text = await self._generate_remote(model_str, prompt, system)
        except TimeoutError as e:
            raise GenerationError(f"{profile.value} generation timed out after {timeout:g}s") from e
        except Exception as e:
            raise GenerationError(f"{profile.value} generation failed: {type(e).__name__}: {e}") from e

        if not text or not text.strip():
            raise GenerationError(f"{profile.value} generation returned an empty response")

        logger.debug("Generated | profile=%s prompt_chars=%d output_chars=%d", profile.value, len(prompt), len(text))
        return text

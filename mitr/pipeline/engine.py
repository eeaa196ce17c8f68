"""
Structured prompt engine: the single boundary between pipeline stages and the model.
"""
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from ..errors import MitrError, ModelCallError, MalformedResponseError
from .prompts import MitrPrompts

logger = logging.getLogger("prompt_engine")

M = TypeVar("M", bound=BaseModel)


class StructuredPromptEngine:
    """
    Sends a named prompt to the LLM client and validates the JSON it returns.

    The client only needs ``agenerate_json(prompt, images=, temperature=, name=)``
    and, for avatars, ``agenerate_image(prompt, name=)``.
    """

    def __init__(self, llm_client, output_shapes: Optional[Dict[str, str]] = None):
        self.llm_client = llm_client
        self.output_shapes = output_shapes if output_shapes is not None else MitrPrompts.output_shapes()

    def build_prompt(self, name: str, prompt: str) -> str:
        shape = self.output_shapes.get(name)
        if not shape:
            return prompt
        return f"{prompt}\n\nReturn a single JSON object with exactly this shape:\n{shape}"

    async def generate(self,
                       name: str,
                       prompt: str,
                       output_model: Type[M],
                       images: Optional[List[str]] = None,
                       temperature: Optional[float] = None) -> M:
        """
        Run one structured prompt.

        Raises:
            ModelCallError: the call failed or returned no usable JSON
            MalformedResponseError: the JSON did not match ``output_model``
        """
        full_prompt = self.build_prompt(name, prompt)
        try:
            data: Any = await self.llm_client.agenerate_json(
                full_prompt, images=images, temperature=temperature, name=name
            )
        except MitrError:
            raise
        except Exception as e:
            # Auth and transport errors from the client libraries
            raise ModelCallError(f"{name} call failed: {e}") from e

        if data is None:
            raise MalformedResponseError(f"{name} produced no result")

        try:
            return output_model.model_validate(data)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(p) for p in first["loc"]) or "(root)"
            logger.warning("%s response failed validation at %s: %s", name, field, first["msg"])
            raise MalformedResponseError(
                f"{name} response did not match schema at {field}: {first['msg']}"
            ) from e

    async def generate_image(self, name: str, prompt: str) -> str:
        try:
            return await self.llm_client.agenerate_image(prompt, name=name)
        except MitrError:
            raise
        except Exception as e:
            raise ModelCallError(f"{name} call failed: {e}") from e

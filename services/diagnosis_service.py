"""
Follow-up diagnosis generation
PromptAssembler -> language model -> section extraction
"""
from typing import Optional, Protocol
import logging

from config import settings
from services.diagnosis_extractor import FollowupDiagnosisResponse, parse_followup_diagnosis
from services.errors import DiagnosisGenerationError
from services.prompt_assembler import FollowupContextData, assemble

logger = logging.getLogger(__name__)


class LanguageModel(Protocol):
    async def complete(self, system_message: str, user_message: str, temperature: float, max_tokens: int) -> str:
        ...


class DiagnosisGenerator:
    """Generates the structured second-pass diagnosis for a follow-up submission"""

    def __init__(
        self,
        model: Optional[LanguageModel] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ):
        if model is None:
            from services.openai_service import openai_service
            model = openai_service
        self.model = model
        self.model_name = getattr(model, "model", None) or type(model).__name__
        self.temperature = settings.DIAGNOSIS_TEMPERATURE if temperature is None else temperature
        self.max_tokens = settings.DIAGNOSIS_MAX_TOKENS if max_tokens is None else max_tokens

    async def generate(self, category: str, context_data: FollowupContextData) -> FollowupDiagnosisResponse:
        """
        Generate a follow-up diagnosis.

        Raises:
            DiagnosisGenerationError: for any failure of the model call. The
                cause (timeout, rate limit, bad input) is logged, not exposed.
        """
        prompt = assemble(category, context_data)

        try:
            generated_text = await self.model.complete(
                prompt.system_message,
                prompt.user_prompt,
                temperature=self.temperature,
                max_tokens=self.max_tokens
            )
        except Exception as e:
            logger.error(
                f"[DIAGNOSIS] {category} follow-up diagnosis failed (model={self.model_name}): "
                f"{type(e).__name__}: {e}"
            )
            raise DiagnosisGenerationError() from e

        logger.info(f"[DIAGNOSIS] Generated {category} follow-up diagnosis ({len(generated_text)} chars)")
        return parse_followup_diagnosis(generated_text, category)

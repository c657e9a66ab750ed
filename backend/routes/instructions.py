"""
Instruction Routes
Generates a spoken-style instruction for a UI element via the chosen AI provider.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from ai.dependencies import get_instruction_service
from auth.dependencies import get_current_user
from auth.models import User
from database import get_session
from instruction_service import InstructionService

router = APIRouter(tags=["instructions"])


# --- Request Models ---

class GenerateInstructionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    element_label: str = Field(alias="elementLabel")
    html_context: str = Field(default="", alias="htmlContext")
    language_code: str = Field(alias="languageCode")
    provider_id: str = Field(alias="providerId")


class GenerateInstructionResponse(BaseModel):
    instruction: str
    language: str
    provider: str
    tts_voice_tag: str


# --- Endpoints ---

@router.post("/generate-instruction", response_model=GenerateInstructionResponse)
async def generate_instruction(
    req: GenerateInstructionRequest,
    user: User = Depends(get_current_user),
    session: Session = Depends(get_session),
    service: InstructionService = Depends(get_instruction_service),
):
    """
    Generate a short instruction in the requested language.

    Always answers 200 with some instruction text once the provider and
    language are found; vendor failures degrade to a templated instruction.
    """
    return await service.generate(
        session,
        user.id,
        req.element_label,
        req.html_context,
        req.language_code,
        req.provider_id,
    )

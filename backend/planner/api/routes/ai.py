from fastapi import APIRouter, Depends

from planner.dependencies import get_current_user_required
from planner.schemas.generation import GeneratedImage, GeneratedText, ImagePrompt
from planner.services.content_generation import ContentGenerator, GenerationRequest, get_content_generator

router = APIRouter(dependencies=[Depends(get_current_user_required)])

@router.post("/text", response_model=GeneratedText)
def generate_text(request: GenerationRequest, generator: ContentGenerator = Depends(get_content_generator)):
    return GeneratedText(text=generator.generate_text(request))

@router.post("/image", response_model=GeneratedImage)
def generate_image(request: ImagePrompt, generator: ContentGenerator = Depends(get_content_generator)):
    return GeneratedImage(image_url=generator.generate_image(request.prompt))

from pydantic import BaseModel, Field

class ImagePrompt(BaseModel):
    prompt: str = Field(..., min_length=1)

class GeneratedText(BaseModel):
    text: str

class GeneratedImage(BaseModel):
    image_url: str

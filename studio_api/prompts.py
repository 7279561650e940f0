import re
from urllib.parse import quote

STYLE_MODIFIERS: dict[str, str] = {
    "realistic": ", photorealistic, highly detailed, natural lighting, 8k",
    "photorealistic": ", photorealistic, highly detailed, natural lighting, 8k",
    "cinematic": ", cinematic lighting, dramatic composition, film still, anamorphic lens",
    "anime": ", anime style, vibrant colors, cel shading, studio quality",
    "digital art": ", digital art, trending on artstation, sharp focus",
    "oil painting": ", oil painting, visible brush strokes, classical composition",
    "watercolor": ", watercolor painting, soft edges, paper texture",
    "sketch": ", pencil sketch, hand-drawn, monochrome line art",
    "3d render": ", 3d render, octane render, global illumination",
    "pixel art": ", pixel art, 16-bit, retro game aesthetic",
}


def build_prompt(prompt: str, style: str | None = None) -> str:
    """Append the style suffix to the prompt.

    Known style names map to a canned phrase; anything else becomes ``", <style> style"``.
    """
    prompt = prompt.strip()
    if not style or not style.strip():
        return prompt
    style = style.strip()
    suffix = STYLE_MODIFIERS.get(style.lower(), f", {style} style")
    return f"{prompt}{suffix}"


_STOPWORDS = frozenset(
    "a an the of on in at to for with and or but is are was be by from into over under "
    "this that these those my your its their very some image picture photo photograph "
    "style realistic cinematic detailed highly lighting".split()
)
_WORD = re.compile(r"[a-zA-Z]{3,}")

STOCK_PHOTO_URL = "https://loremflickr.com/1024/1024/{keyword}?lock={lock}"


def prompt_keyword(prompt: str) -> str:
    """Pick the first meaningful word of the prompt for a stock photo search."""
    for word in _WORD.findall(prompt.lower()):
        if word not in _STOPWORDS:
            return word
    return "abstract"


def stock_images(prompt: str, count: int) -> list[str]:
    """Keyword-matched stock photo URLs used when no AI provider is available.

    Deterministic: the same prompt always yields the same URLs.
    """
    keyword = quote(prompt_keyword(prompt), safe="")
    return [STOCK_PHOTO_URL.format(keyword=keyword, lock=i + 1) for i in range(count)]


VISION_SYSTEM_PROMPT = """You are an expert image analyst specializing in visual content analysis for AI image generation.

Analyze the provided image and extract:
1. Objects: List the main objects, subjects, and elements visible in the image
2. Style: Describe the visual/artistic style (e.g., photorealistic, illustration, oil painting, digital art, etc.)
3. Mood: Describe the emotional mood and atmosphere (e.g., peaceful, dramatic, joyful, mysterious, etc.)
4. Lighting: Describe the lighting conditions (e.g., natural sunlight, golden hour, studio lighting, dramatic shadows, etc.)

Then generate a detailed prompt that could recreate a similar image using a diffusion model.

Respond ONLY with valid JSON in this exact format:
{
  "analysis": {
    "objects": ["object1", "object2", "object3"],
    "style": "Description of the visual/artistic style",
    "mood": "Description of the mood and atmosphere",
    "lighting": "Description of the lighting"
  },
  "suggestedPrompt": "A detailed image generation prompt that captures the essence of this image."
}

Guidelines for the suggested prompt:
- Be specific and descriptive
- Include art style and medium
- Mention lighting and atmosphere
- Describe composition when relevant
- Keep it focused and coherent (under 500 characters)"""

ANALYZE_USER_PROMPT = "Analyze this image and provide the analysis with a suggested generation prompt."

ENHANCE_SYSTEM_PROMPT = """You are an expert prompt engineer specializing in image generation prompts.

Your task is to analyze user input and transform it into a high-quality, detailed image generation prompt.

For each input, you must:
1. Analyze the user's intent (what they want to create)
2. Identify the tone (formal, casual, creative, dramatic, whimsical, etc.)
3. Extract or infer visual/style requirements (art style, realism level, lighting, mood, color palette, composition)
4. Rewrite the input into a detailed, professional image generation prompt

Respond ONLY with valid JSON in this exact format:
{
  "analysis": {
    "intent": "Clear description of what the user wants",
    "tone": "The emotional/stylistic tone",
    "style": "Art style, lighting, mood, and visual requirements"
  },
  "enhancedPrompt": "A detailed, professional image generation prompt that captures all requirements."
}

Guidelines for enhanced prompts:
- Be specific and descriptive
- Include art style (photorealistic, digital art, oil painting, etc.)
- Specify lighting conditions
- Describe mood and atmosphere
- Add composition details when relevant
- Keep prompts focused and coherent"""

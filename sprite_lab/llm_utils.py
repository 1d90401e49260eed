"""Narrow client layer over the hosted generative models.

Everything the rest of the package needs from a provider fits in three calls,
captured by :class:`GenerativeBackend`:

* ``generate_text`` – prompt plus optional inline image in, text out.
* ``generate_image`` – prompt plus reference image in, base64 image out.
* ``edit_image`` – prompt plus an uploaded image file in, base64 image out.

Each call issues exactly one request.  SDK failures and empty answers are
raised as :class:`~sprite_lab.errors.UpstreamError`; nothing is retried here.
"""

import base64
import logging
from pathlib import Path
from typing import Any, Literal, Optional, Protocol, Union

from google.genai import errors as genai_errors
from google.genai import types
from openai import OpenAIError

from sprite_lab.errors import UpstreamError

logger = logging.getLogger(__name__)

ImageDetail = Literal["low", "high", "auto"]

_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
}


def encode_image(file_path: Union[str, Path]) -> str:
    """Read an image from disk and return it base64-encoded."""
    with open(file_path, "rb") as handle:
        return base64.b64encode(handle.read()).decode("ascii")


def mime_type_for(file_path: Union[str, Path]) -> str:
    ext = Path(file_path).suffix.lower()
    mime_type = _MIME_TYPES.get(ext)
    if mime_type is None:
        raise ValueError(f"Unsupported image extension: {ext or '<none>'}. Use .png, .jpg/.jpeg, or .webp")
    return mime_type


def data_url(image_base64: str, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{image_base64}"


class GenerativeBackend(Protocol):
    """Capability interface implemented by each provider backend."""

    def generate_text(
        self,
        prompt: str,
        image_base64: Optional[str] = None,
        system_message: Optional[str] = None,
        detail: ImageDetail = "high",
        mime_type: str = "image/png",
    ) -> str: ...

    def generate_image(self, prompt: str, image_base64: str, mime_type: str = "image/png") -> str: ...

    def edit_image(
        self,
        prompt: str,
        image_bytes: bytes,
        filename: str,
        mime_type: str,
        size: str = "1024x1024",
    ) -> str: ...


class OpenAIBackend:
    """OpenAI Responses/Images API backend."""

    def __init__(
        self,
        client: Any,
        text_model: str = "gpt-4.1-mini",
        image_model: str = "gpt-5",
        edit_model: str = "gpt-image-1",
        temperature: Optional[float] = 0.0,
    ) -> None:
        self.client = client
        self.text_model = text_model
        self.image_model = image_model
        self.edit_model = edit_model
        self.temperature = temperature

    def with_image_model(self, image_model: str) -> "OpenAIBackend":
        """Return a backend sharing this client but generating images with ``image_model``."""
        return OpenAIBackend(
            self.client,
            text_model=self.text_model,
            image_model=image_model,
            edit_model=self.edit_model,
            temperature=self.temperature,
        )

    def generate_text(
        self,
        prompt: str,
        image_base64: Optional[str] = None,
        system_message: Optional[str] = None,
        detail: ImageDetail = "high",
        mime_type: str = "image/png",
    ) -> str:
        content = [{"type": "input_text", "text": prompt}]
        if image_base64 is not None:
            content.append(
                {"type": "input_image", "image_url": data_url(image_base64, mime_type), "detail": detail}
            )
        messages = [{"role": "user", "content": content}]
        if system_message:
            messages.append({"role": "developer", "content": system_message})

        request = {"model": self.text_model, "input": messages}
        if self.temperature is not None:
            request["temperature"] = self.temperature

        logger.debug("OpenAI text request: model=%s image=%s", self.text_model, image_base64 is not None)
        try:
            response = self.client.responses.create(**request)
        except OpenAIError as exc:
            raise UpstreamError(f"OpenAI text request failed: {exc}") from exc

        text = getattr(response, "output_text", None)
        if not text:
            raise UpstreamError("No description text returned from the OpenAI request.")
        return text

    def generate_image(self, prompt: str, image_base64: str, mime_type: str = "image/png") -> str:
        logger.debug("OpenAI image generation request: model=%s", self.image_model)
        try:
            response = self.client.responses.create(
                model=self.image_model,
                input=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "input_text", "text": prompt},
                            {
                                "type": "input_image",
                                "image_url": data_url(image_base64, mime_type),
                                "detail": "high",
                            },
                        ],
                    }
                ],
                tools=[{"type": "image_generation", "input_fidelity": "high", "background": "transparent"}],
            )
        except OpenAIError as exc:
            raise UpstreamError(f"OpenAI image generation failed: {exc}") from exc

        images = [
            output.result
            for output in (getattr(response, "output", None) or [])
            if getattr(output, "type", None) == "image_generation_call"
            and isinstance(getattr(output, "result", None), str)
        ]
        if not images:
            raise UpstreamError("No image data returned from image generation.")
        return images[0]

    def edit_image(
        self,
        prompt: str,
        image_bytes: bytes,
        filename: str,
        mime_type: str,
        size: str = "1024x1024",
    ) -> str:
        logger.debug("OpenAI image edit request: model=%s file=%s", self.edit_model, filename)
        try:
            response = self.client.images.edit(
                image=(filename, image_bytes, mime_type),
                prompt=prompt,
                model=self.edit_model,
                n=1,
                size=size,
                quality="auto",
                background="transparent",
                input_fidelity="high",
            )
        except OpenAIError as exc:
            raise UpstreamError(f"OpenAI image edit failed: {exc}") from exc

        data = getattr(response, "data", None) or []
        b64 = getattr(data[0], "b64_json", None) if data else None
        if not b64:
            raise UpstreamError("No image data returned from images.edit.")
        return b64


class GeminiBackend:
    """Google Gemini backend built on the ``google-genai`` SDK."""

    def __init__(
        self,
        client: Any,
        text_model: str = "gemini-2.5-flash",
        image_model: str = "gemini-2.5-flash-image",
        temperature: Optional[float] = 0.0,
    ) -> None:
        self.client = client
        self.text_model = text_model
        self.image_model = image_model
        self.temperature = temperature

    def with_image_model(self, image_model: str) -> "GeminiBackend":
        return GeminiBackend(
            self.client,
            text_model=self.text_model,
            image_model=image_model,
            temperature=self.temperature,
        )

    def _image_part(self, image_bytes: bytes, mime_type: str):
        return types.Part.from_bytes(data=image_bytes, mime_type=mime_type)

    def generate_text(
        self,
        prompt: str,
        image_base64: Optional[str] = None,
        system_message: Optional[str] = None,
        detail: ImageDetail = "high",
        mime_type: str = "image/png",
    ) -> str:
        contents = [prompt]
        if image_base64 is not None:
            contents.append(self._image_part(base64.b64decode(image_base64), mime_type))

        config = types.GenerateContentConfig(
            temperature=self.temperature,
            system_instruction=system_message,
            response_mime_type="application/json",
        )
        logger.debug("Gemini text request: model=%s image=%s", self.text_model, image_base64 is not None)
        try:
            response = self.client.models.generate_content(
                model=self.text_model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as exc:
            raise UpstreamError(f"Gemini text request failed: {exc}") from exc

        text = getattr(response, "text", None)
        if not text:
            raise UpstreamError("No description text returned from the Gemini request.")
        return text

    def _request_image(self, prompt: str, image_bytes: bytes, mime_type: str) -> str:
        config = types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"])
        logger.debug("Gemini image request: model=%s", self.image_model)
        try:
            response = self.client.models.generate_content(
                model=self.image_model,
                contents=[prompt, self._image_part(image_bytes, mime_type)],
                config=config,
            )
        except genai_errors.APIError as exc:
            raise UpstreamError(f"Gemini image generation failed: {exc}") from exc

        for candidate in getattr(response, "candidates", None) or []:
            content = getattr(candidate, "content", None)
            for part in getattr(content, "parts", None) or []:
                blob = getattr(part, "inline_data", None)
                data = getattr(blob, "data", None)
                if data:
                    if isinstance(data, str):
                        return data
                    return base64.b64encode(data).decode("ascii")
        raise UpstreamError("No image data returned from image generation.")

    def generate_image(self, prompt: str, image_base64: str, mime_type: str = "image/png") -> str:
        return self._request_image(prompt, base64.b64decode(image_base64), mime_type)

    def edit_image(
        self,
        prompt: str,
        image_bytes: bytes,
        filename: str,
        mime_type: str,
        size: str = "1024x1024",
    ) -> str:
        # Gemini has no separate edit endpoint or size parameter.
        return self._request_image(prompt, image_bytes, mime_type)

"""
Integration with Replicate for text-to-image illustration of story paragraphs.
"""

from __future__ import annotations

from collections.abc import Iterable as IterableABC
from typing import Any, Mapping

import replicate
import requests
from replicate.exceptions import ReplicateException

from picturebook.common.config import DEFAULT_IMAGE_MODEL, PictureBookSettings
from picturebook.common.errors import (
    EmptyContentError,
    InvalidCredentialError,
    NotConfiguredError,
    QuotaExceededError,
    UnknownUpstreamError,
    UpstreamError,
    classify_error_message,
)

from .storage import LocalImageStore


def _build_flux_schnell_input(prompt: str) -> dict[str, Any]:
    return {
        "prompt": prompt,
        "output_format": "jpg",
        "num_outputs": 1,
        "aspect_ratio": "1:1",
    }


def _build_generic_input(prompt: str) -> dict[str, Any]:
    return {"prompt": prompt}


_MODEL_INPUT_BUILDERS = {
    "black-forest-labs/flux-schnell": _build_flux_schnell_input,
    "black-forest-labs/flux-dev": _build_flux_schnell_input,
}


def _build_replicate_input_payload(*, model_identifier: str, prompt: str) -> dict[str, Any]:
    normalized_identifier = model_identifier.strip().lower()
    builder = _MODEL_INPUT_BUILDERS.get(normalized_identifier)
    if builder is None and ":" in normalized_identifier:
        base_identifier = normalized_identifier.split(":", maxsplit=1)[0]
        builder = _MODEL_INPUT_BUILDERS.get(base_identifier)
    return (builder or _build_generic_input)(prompt)


class ReplicateImageGenerator:
    """
    Image Provider: renders an illustration prompt and stores the resulting bytes.

    Parameters
    ----------
    store:
        Storage collaborator that persists the image bytes and returns a reference.
    api_token:
        Replicate API token. Without it (and without ``client``) every call fails
        with :class:`NotConfiguredError`.
    model_identifier:
        Replicate model in the ``owner/model[:version]`` format.
    client:
        Optional pre-configured :class:`replicate.Client`. Mainly useful for testing.
    request_timeout:
        Timeout in seconds when an output has to be downloaded from a URL.
    """

    def __init__(
        self,
        *,
        store: LocalImageStore,
        api_token: str | None = None,
        model_identifier: str = DEFAULT_IMAGE_MODEL,
        client: replicate.Client | None = None,
        request_timeout: float = 60.0,
        model_kwargs: Mapping[str, Any] | None = None,
    ) -> None:
        self._store = store
        self._model_identifier = model_identifier
        self._request_timeout = request_timeout
        self._model_kwargs = dict(model_kwargs or {})
        if client is None and api_token:
            client = replicate.Client(api_token=api_token)
        self._client = client

    @classmethod
    def from_settings(
        cls,
        settings: PictureBookSettings,
        *,
        client: replicate.Client | None = None,
    ) -> "ReplicateImageGenerator":
        return cls(
            store=LocalImageStore(
                settings.image_output_dir,
                public_prefix=settings.image_public_prefix,
            ),
            api_token=settings.replicate_api_token,
            model_identifier=settings.image_model,
            client=client,
        )

    @property
    def model_identifier(self) -> str:
        """Return the model identifier currently used."""
        return self._model_identifier

    def generate_image(self, prompt: str) -> str:
        """
        Generate one illustration for ``prompt`` and return its storage reference.

        Raises an ``UpstreamError`` subclass when the model call, the download, or
        the output itself is unusable.
        """
        if self._client is None:
            raise NotConfiguredError("Replicate API token not configured.")
        if not prompt or not prompt.strip():
            raise EmptyContentError("Illustration prompt must be a non-empty string.")

        replicate_input = _build_replicate_input_payload(
            model_identifier=self._model_identifier,
            prompt=prompt,
        )
        replicate_input.update(self._model_kwargs)

        try:
            raw_output = self._client.run(self._model_identifier, input=replicate_input)
            data = self._read_output_bytes(_first_output(raw_output))
            return self._store.save(data, prompt=prompt)
        except UpstreamError:
            raise
        except ReplicateException as exc:
            raise _translate_replicate_error(exc) from exc
        except Exception as exc:
            raise UnknownUpstreamError(
                "Failed to generate image.", details={"cause": str(exc)}
            ) from exc

    def _read_output_bytes(self, output: Any) -> bytes:
        if output is None:
            raise EmptyContentError("Image provider returned no output.")

        if hasattr(output, "read"):
            data = output.read()
        elif isinstance(output, bytes):
            data = output
        elif isinstance(output, str) and output.lower().startswith(("http://", "https://")):
            data = self._download(output)
        else:
            raise UnknownUpstreamError(
                "Unexpected image provider output.", details={"output": repr(output)}
            )

        if not data:
            raise EmptyContentError("Image provider returned an empty image.")
        return data

    def _download(self, url: str) -> bytes:
        try:
            response = requests.get(url, timeout=self._request_timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise UnknownUpstreamError(
                "Failed to download generated image.", details={"url": url, "cause": str(exc)}
            ) from exc
        return response.content


def _first_output(raw: Any) -> Any:
    """
    Pick the first image from whatever shape the Replicate model returned.
    """
    if raw is None or isinstance(raw, (str, bytes)) or hasattr(raw, "read"):
        return raw

    if isinstance(raw, IterableABC):
        for item in raw:
            if item is not None:
                return item
        return None

    return raw


def _translate_replicate_error(exc: ReplicateException) -> UpstreamError:
    status = getattr(exc, "status", None)
    details = {"status": status, "cause": str(exc)}
    if status in (401, 403):
        return InvalidCredentialError("Image provider rejected the API token.", details=details)
    if status == 429:
        return QuotaExceededError("Image provider quota exceeded.", details=details)

    error_cls = classify_error_message(str(exc))
    return error_cls("Failed to generate image.", details=details)

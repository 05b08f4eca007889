"""
Filesystem storage for generated illustrations.
"""

from __future__ import annotations

import re
import time
from pathlib import Path

_UNSAFE_CHARACTERS = re.compile(r"[^a-zA-Z0-9]")
MAX_PROMPT_FRAGMENT = 50


def sanitize_prompt_fragment(prompt: str, *, max_length: int = MAX_PROMPT_FRAGMENT) -> str:
    return _UNSAFE_CHARACTERS.sub("_", prompt)[:max_length]


def build_image_filename(prompt: str, timestamp_ms: int, *, extension: str = "jpg") -> str:
    """
    Build ``{timestamp}_{fragment}.{extension}`` for a stored illustration.
    """
    return f"{timestamp_ms}_{sanitize_prompt_fragment(prompt)}.{extension.lstrip('.')}"


class LocalImageStore:
    """
    Writes image bytes into a directory and returns the public URL path for them.

    Parameters
    ----------
    output_dir:
        Directory that receives the files. Created on first write.
    public_prefix:
        URL path under which ``output_dir`` is served.
    """

    def __init__(
        self,
        output_dir: Path | str,
        *,
        public_prefix: str = "/generated_images",
    ) -> None:
        self.output_dir = Path(output_dir)
        self.public_prefix = public_prefix.rstrip("/")

    def save(self, data: bytes, *, prompt: str, extension: str = "jpg") -> str:
        timestamp_ms = time.time_ns() // 1_000_000
        filename = build_image_filename(prompt, timestamp_ms, extension=extension)

        self.output_dir.mkdir(parents=True, exist_ok=True)
        target = self.output_dir / filename
        # Concurrent pages can share a millisecond and a prompt prefix.
        suffix = 1
        while True:
            try:
                handle = target.open("xb")
            except FileExistsError:
                stem, ext = Path(filename).stem, Path(filename).suffix
                target = self.output_dir / f"{stem}_{suffix}{ext}"
                suffix += 1
                continue

            try:
                with handle:
                    handle.write(data)
            except OSError:
                target.unlink(missing_ok=True)
                raise
            break

        return f"{self.public_prefix}/{target.name}"

    def resolve(self, image_ref: str) -> Path:
        """Map a reference returned by :meth:`save` back to its file on disk."""
        name = image_ref.rsplit("/", maxsplit=1)[-1]
        return self.output_dir / name

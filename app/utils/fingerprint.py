"""
Build Fingerprint
=================
Incremental content fingerprint over the *declared* inputs of a build.

Byte stream fed into the hash, in this exact order:

    Components:\\n
    <url> <name> <revision>\\n        one line per component, sorted by key
    Steps:\\n
    <directory>                       per step, in declaration order
    <i>: <arg>\\n                      per element of the step command
    \\n                                end of step

Rules:
    - Component revision is the resolved commit id, or the requested ref when
      the checkout failed.
    - Steps are hashed whether they ran, failed or were skipped, so the
      fingerprint does not depend on the outcome.
    - Environment variables are not part of the fingerprint.
    - SHA-256, hex encoded.
"""
import hashlib
from typing import Sequence

from app.core.constants import FINGERPRINT_COMPONENTS_HEADER, FINGERPRINT_STEPS_HEADER


class BuildFingerprint:
    """
    Accumulates the fingerprint while the pipeline walks components and steps.

    Usage:
        fp = BuildFingerprint()
        fp.add_component("https://host/lib.git", "lib", "abc123")
        fp.add_step("lib", ["make"])
        digest = fp.hexdigest()

    Component lines must all be added before the first step.
    """

    def __init__(self) -> None:
        self._hash = hashlib.sha256()
        self._steps_started = False
        self._write(FINGERPRINT_COMPONENTS_HEADER)

    def _write(self, text: str) -> None:
        self._hash.update(text.encode("utf-8"))

    def add_component(self, url: str, name: str, revision: str) -> None:
        if self._steps_started:
            raise RuntimeError("components must be fingerprinted before steps")
        self._write(f"{url} {name} {revision}\n")

    def add_step(self, directory: str, command: Sequence[str]) -> None:
        if not self._steps_started:
            self._write(FINGERPRINT_STEPS_HEADER)
            self._steps_started = True
        self._write(directory)
        for index, arg in enumerate(command):
            self._write(f"{index}: {arg}\n")
        self._write("\n")

    def hexdigest(self) -> str:
        """Return the digest; a build without steps still gets the steps header."""
        if not self._steps_started:
            self._write(FINGERPRINT_STEPS_HEADER)
            self._steps_started = True
        return self._hash.hexdigest()

import hashlib

import pytest

from app.utils.fingerprint import BuildFingerprint


def _sha(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def test_byte_stream_layout():
    fp = BuildFingerprint()
    fp.add_component("u", "lib", "abc123")
    fp.add_step("lib", ["make"])
    assert fp.hexdigest() == _sha("Components:\nu lib abc123\nSteps:\nlib0: make\n\n")


def test_multi_argument_step():
    fp = BuildFingerprint()
    fp.add_step("", ["make", "-j4", "all"])
    assert fp.hexdigest() == _sha("Components:\nSteps:\n0: make\n1: -j4\n2: all\n\n")


def test_empty_build_has_stable_digest():
    assert BuildFingerprint().hexdigest() == _sha("Components:\nSteps:\n")


def test_argument_boundaries_matter():
    a = BuildFingerprint()
    a.add_step("lib", ["make", "a b"])
    b = BuildFingerprint()
    b.add_step("lib", ["make", "a", "b"])
    assert a.hexdigest() != b.hexdigest()


def test_components_after_steps_rejected():
    fp = BuildFingerprint()
    fp.add_step("lib", ["make"])
    with pytest.raises(RuntimeError):
        fp.add_component("u", "lib", "abc")

"""Runtime detection from source text."""

from __future__ import annotations

from modalbox.models.sandbox import Runtime

DEFAULT_RUNTIME = Runtime.NODE

# Checked in order; the first runtime with a matching marker wins
RUNTIME_MARKERS: tuple[tuple[Runtime, tuple[str, ...]], ...] = (
    (
        Runtime.NODE,
        (
            "console.log",
            "process.",
            "require(",
            "module.exports",
            "__dirname",
            "__filename",
            "throw new Error",
            "new Error(",
        ),
    ),
    (
        Runtime.PYTHON,
        (
            "print(",
            "import ",
            "def ",
            "sys.",
            "json.",
            'f"',
            "f'",
            "raise ",
        ),
    ),
)


def detect_runtime(code: str) -> Runtime:
    """Guess the runtime for ``code`` by literal substring matching.

    The code is never parsed or executed. Text without any marker gets
    ``DEFAULT_RUNTIME``.
    """
    for runtime, markers in RUNTIME_MARKERS:
        if any(marker in code for marker in markers):
            return runtime
    return DEFAULT_RUNTIME

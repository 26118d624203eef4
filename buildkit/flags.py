"""Allow-listed property forwarding from the invoker into launched applications."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

FORWARDED_FLAGS: tuple[str, ...] = (
    "verifyFeedbackNoLeakage",
    "verifyFeedbackNoLeakageMultiSeed",
    "verifyFeedbackNoLeakageAdaptSweep",
    "verifyFeedbackSweep",
    "adaptSizes",
    "adaptSeeds",
    "feedbackMode",
    "feedbackModes",
    "printPerSeed",
    "server.port",
    "rowFeedback",
    "colFeedback",
    "markov.data.dir",
    "networkAttractorSanity",
    "networkConvergenceSweep",
)


class PropertySyntaxError(ValueError):
    """Raised when a ``-D`` assignment is not of the form ``name=value``."""


def forward_properties(
    properties: Mapping[str, str],
    allow_list: Iterable[str] = FORWARDED_FLAGS,
) -> dict[str, str]:
    """Return the allow-listed subset of *properties*, values untouched.

    Names are emitted in allow-list order. Missing names are left out rather
    than defaulted.
    """

    return {name: properties[name] for name in allow_list if name in properties}


def rejected_properties(
    properties: Mapping[str, str],
    allow_list: Iterable[str] = FORWARDED_FLAGS,
) -> list[str]:
    allowed = set(allow_list)
    return sorted(name for name in properties if name not in allowed)


def system_property_args(properties: Mapping[str, str]) -> list[str]:
    """Render properties as JVM ``-Dname=value`` arguments."""

    return [f"-D{name}={value}" for name, value in properties.items()]


def parse_property_assignments(assignments: Iterable[str]) -> dict[str, str]:
    """Parse ``name=value`` strings; later assignments to a name win.

    A leading ``-D`` is tolerated so ``-Dname=value`` can be pasted verbatim.
    Only the first ``=`` splits, so values may themselves contain ``=``.
    """

    parsed: dict[str, str] = {}
    for raw in assignments:
        text = raw[2:] if raw.startswith("-D") else raw
        name, sep, value = text.partition("=")
        name = name.strip()
        if not sep or not name:
            raise PropertySyntaxError(
                f"Invalid property '{raw}'; expected name=value"
            )
        parsed[name] = value
    return parsed

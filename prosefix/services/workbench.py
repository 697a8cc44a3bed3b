"""
Job assembly for the two workbench modes.

Grammar correction sends each paragraph on its own; translation batches
paragraphs into chunks so the model sees shared context. Both produce Jobs
for the OrderedDispatcher plus a renderer for the wire records.
"""

from collections.abc import Callable, Mapping, Sequence
from functools import partial
from typing import Any

from .dispatcher import Job, Result
from .prompts import (
    GrammarOptions,
    TranslateOptions,
    build_grammar_prompt,
    build_translation_prompt,
)
from .segmenter import Unit, chunk_units
from .translation_parser import parse_translation_payload


def _whole_output(index: int, output: str) -> Mapping[int, str]:
    return {index: output}


def _translation_output(indices: tuple[int, ...], output: str) -> Mapping[int, str]:
    return parse_translation_payload(output, indices)


def grammar_jobs(units: Sequence[Unit], options: GrammarOptions) -> list[Job]:
    """One job per paragraph; the whole model output is the correction."""
    return [
        Job(
            indices=(unit.index,),
            prompt=build_grammar_prompt(unit.text, options),
            decode=partial(_whole_output, unit.index),
        )
        for unit in units
    ]


def translation_jobs(units: Sequence[Unit], options: TranslateOptions) -> list[Job]:
    """One job per chunk; the output is parsed back into per-paragraph text."""
    jobs = []
    for chunk in chunk_units(units, options.max_paragraphs, options.max_chars):
        indices = tuple(chunk.indices)
        jobs.append(
            Job(
                indices=indices,
                prompt=build_translation_prompt(chunk.units, options),
                decode=partial(_translation_output, indices),
            )
        )
    return jobs


def grammar_renderer(units: Sequence[Unit]) -> Callable[[Result], dict[str, Any]]:
    originals = {unit.index: unit.text for unit in units}

    def render(result: Result) -> dict[str, Any]:
        return {
            "index": result.index,
            "original": originals[result.index],
            "corrected": result.output_text,
        }

    return render


def render_translation(result: Result) -> dict[str, Any]:
    return {"index": result.index, "translated": result.output_text}

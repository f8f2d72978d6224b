"""Typed ffmpeg filter graphs.

Editors build graphs out of :class:`Filter` nodes joined into :class:`Chain`
objects whose edges are labeled streams. Nothing is turned into ffmpeg's
``-filter_complex`` text until :meth:`FilterGraph.render` is called, so the
topology can be inspected and tested on its own.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path

# Characters that end an option value in the filter grammar.
_NEEDS_QUOTING = re.compile(r"[,:;\[\]=\\' ]")


def _format_value(value: object) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, float):
        text = f"{value:.6f}".rstrip("0").rstrip(".")
        return text if text not in ("", "-0") else "0"
    text = str(value)
    if _NEEDS_QUOTING.search(text):
        if "'" in text:
            raise ValueError(f"filter value cannot contain a quote: {text!r}")
        return f"'{text}'"
    return text


@dataclass(init=False)
class Filter:
    """One filter node, e.g. ``Filter("trim", start=1.5, end=3.0)``."""

    name: str
    args: tuple
    options: dict[str, object]

    def __init__(self, name: str, *args: object, **options: object):
        self.name = name
        self.args = args
        self.options = options

    def render(self) -> str:
        parts = [_format_value(a) for a in self.args]
        parts += [f"{k}={_format_value(v)}" for k, v in self.options.items()]
        return f"{self.name}={':'.join(parts)}" if parts else self.name


@dataclass
class Chain:
    """A linear run of filters from input labels to output labels."""

    inputs: list[str]
    filters: list[Filter]
    outputs: list[str]

    def render(self) -> str:
        ins = "".join(f"[{label}]" for label in self.inputs)
        outs = "".join(f"[{label}]" for label in self.outputs)
        body = ",".join(f.render() for f in self.filters)
        return f"{ins}{body}{outs}"


def is_input_stream(label: str) -> bool:
    """True for references to input file streams such as ``0:v`` or ``1:a``."""
    return bool(re.fullmatch(r"\d+:[va](:\d+)?", label))


@dataclass
class FilterGraph:
    chains: list[Chain] = field(default_factory=list)

    def add(self, inputs: list[str], filters: list[Filter], outputs: list[str]) -> Chain:
        chain = Chain(list(inputs), list(filters), list(outputs))
        self.chains.append(chain)
        return chain

    def produced(self) -> list[str]:
        return [label for c in self.chains for label in c.outputs]

    def consumed(self) -> list[str]:
        return [label for c in self.chains for label in c.inputs]

    def sinks(self) -> list[str]:
        """Labels produced but never consumed, i.e. the graph outputs."""
        consumed = set(self.consumed())
        return [label for label in self.produced() if label not in consumed]

    def validate(self) -> None:
        """Check that every label is produced once and consumed after it exists."""
        seen: set[str] = set()
        used: set[str] = set()
        for chain in self.chains:
            if not chain.filters:
                raise ValueError("filter chain has no filters")
            for label in chain.inputs:
                if is_input_stream(label):
                    continue
                if label not in seen:
                    raise ValueError(f"stream [{label}] consumed before it is produced")
                if label in used:
                    raise ValueError(f"stream [{label}] consumed twice")
                used.add(label)
            for label in chain.outputs:
                if label in seen:
                    raise ValueError(f"stream [{label}] produced twice")
                seen.add(label)

    def render(self) -> str:
        self.validate()
        return ";".join(c.render() for c in self.chains)


@dataclass
class Command:
    """A complete ffmpeg invocation: inputs, optional graph, maps and output."""

    inputs: list[Path]
    output: Path
    graph: FilterGraph | None = None
    maps: list[str] = field(default_factory=list)
    output_args: list[str] = field(default_factory=list)
    input_args: list[str] = field(default_factory=list)

    def to_args(self) -> list[str]:
        args = ["ffmpeg", "-hide_banner", "-y", *self.input_args]
        for path in self.inputs:
            args += ["-i", str(path)]
        if self.graph is not None and self.graph.chains:
            args += ["-filter_complex", self.graph.render()]
        for m in self.maps:
            args += ["-map", f"[{m}]" if self.graph and m in self.graph.produced() else m]
        args += self.output_args
        args.append(str(self.output))
        return args

"""
procscribe.tools.drawio_render
Fill a draw.io (mxfile) template from a ProcessState.

Slots
-----
Cells with fixed ids are addressed directly; only their `value` (and, for the
step slots, the `opacity` part of `style`) is rewritten, so the cell-id graph
of the template never changes between renders.

ORG  PROC  GOAL  OWNER  PRODUCT  START  END   – context / boundaries
CONS1 … CONS3                                 – first three consumers
STEP1 … STEP4, STEP1_DETAIL … STEP4_DETAIL    – first four process/decision nodes

Unused step slots, their detail blocks and every edge touching them get
`opacity=0;`; the directive is removed again once the slot is used.
Re-rendering the output with the same state yields the same bytes.
"""
from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Set
from xml.sax.saxutils import escape

from langchain_core.runnables import Runnable

from procscribe.schema import Node, ProcessState

log = logging.getLogger(__name__)

MAX_STEPS     = 4
MAX_CONSUMERS = 3

_S = {
    "tag":     "rounded=1;whiteSpace=wrap;html=1;align=left;verticalAlign=top;spacing=8;",
    "title":   "text;html=1;strokeColor=none;fillColor=none;align=center;fontStyle=1;fontSize=16;whiteSpace=wrap;",
    "term":    "shape=terminator;whiteSpace=wrap;html=1;align=center;verticalAlign=middle;spacing=8;",
    "process": "rounded=0;whiteSpace=wrap;html=1;align=center;verticalAlign=middle;spacing=8;",
    "detail":  "text;html=1;strokeColor=none;fillColor=none;align=left;verticalAlign=middle;whiteSpace=wrap;fontSize=11;",
    "edge":    "endArrow=block;endFill=1;html=1;rounded=0;",
}


def _vertex(cid: str, style: str, x: int, y: int, w: int, h: int) -> str:
    return (f'        <mxCell id="{cid}" value="" style="{style}" vertex="1" parent="1">\n'
            f'          <mxGeometry x="{x}" y="{y}" width="{w}" height="{h}" as="geometry"/>\n'
            f'        </mxCell>')


def _edge(cid: str, source: str, target: str) -> str:
    return (f'        <mxCell id="{cid}" style="{_S["edge"]}" edge="1" parent="1" '
            f'source="{source}" target="{target}">\n'
            f'          <mxGeometry relative="1" as="geometry"/>\n'
            f'        </mxCell>')


def _build_template() -> str:
    cells = [
        _vertex("PROC", _S["title"], 40, 10, 1120, 40),
        _vertex("ORG", _S["tag"], 40, 60, 360, 50),
        _vertex("OWNER", _S["tag"], 420, 60, 360, 50),
        _vertex("GOAL", _S["tag"], 800, 60, 360, 50),
        _vertex("PRODUCT", _S["tag"], 40, 120, 360, 50),
    ]
    cells += [_vertex(f"CONS{i}", _S["tag"], 420 + (i - 1) * 250, 120, 230, 50)
              for i in range(1, MAX_CONSUMERS + 1)]
    cells.append(_vertex("START", _S["term"], 200, 200, 420, 60))
    y = 290
    for i in range(1, MAX_STEPS + 1):
        cells.append(_vertex(f"STEP{i}", _S["process"], 200, y, 420, 70))
        cells.append(_vertex(f"STEP{i}_DETAIL", _S["detail"], 650, y, 420, 70))
        y += 100
    cells.append(_vertex("END", _S["term"], 200, y, 420, 60))

    chain = ["START"] + [f"STEP{i}" for i in range(1, MAX_STEPS + 1)] + ["END"]
    cells += [_edge(f"E_{a}_{b}", a, b) for a, b in zip(chain, chain[1:])]
    cells += [_edge(f"E_STEP{i}_DETAIL", f"STEP{i}", f"STEP{i}_DETAIL")
              for i in range(1, MAX_STEPS + 1)]

    return ('<mxfile host="procscribe">\n'
            '  <diagram id="process" name="Процесс">\n'
            '    <mxGraphModel dx="1200" dy="900" grid="1" gridSize="10" page="1" '
            'pageWidth="1200" pageHeight="900">\n'
            '      <root>\n'
            '        <mxCell id="0"/>\n'
            '        <mxCell id="1" parent="0"/>\n'
            + "\n".join(cells) + "\n"
            '      </root>\n'
            '    </mxGraphModel>\n'
            '  </diagram>\n'
            '</mxfile>\n')


TEMPLATE = _build_template()

# opening <mxCell …> tag; quoted attribute values may contain '>'
_CELL_TAG_RE = re.compile(r'<mxCell\b(?:[^>"]|"[^"]*")*>')
_OPACITY_RE  = re.compile(r"(?<![A-Za-z])opacity=0;?")


# ── helpers ──────────────────────────────────────────────────────────────
def wrap_label(text: Any) -> str:
    """Newlines → <br/> first, then XML-escape the whole label."""
    t = str(text or "").strip()
    if not t:
        return ""
    t = re.sub(r"\r\n?|\n", "<br/>", t)
    return escape(t, {'"': "&quot;", "'": "&apos;"})


def _joined(*parts: Any, sep: str = " - ") -> str:
    return sep.join(str(p).strip() for p in parts if p and str(p).strip())


def _tagged(prefix: str, value: Any) -> str:
    value = str(value or "").strip()
    return f"{prefix}: {value}" if value else ""


def step_nodes(state: ProcessState) -> List[Node]:
    nodes = state.graph.nodes if state.graph else []
    return [n for n in nodes if n.type in ("process", "decision")][:MAX_STEPS]


def slot_values(state: ProcessState) -> Dict[str, str]:
    """Plain-text value for every slot id (not yet escaped)."""
    org   = state.organization
    owner = state.owner
    bnd   = state.boundaries
    values = {
        "PROC":    (state.process.name if state.process else None) or "Процесс",
        "ORG":     _tagged("Орг.", org and (org.name or org.activity)),
        "OWNER":   _tagged("Владелец", owner and _joined(owner.full_name, owner.position)),
        "GOAL":    _tagged("Цель", state.goal),
        "PRODUCT": _tagged("Продукт", state.product),
        "START":   _tagged("Старт", bnd and bnd.start),
        "END":     _tagged("Финиш", bnd and bnd.end),
    }
    consumers = state.consumers or []
    for i in range(MAX_CONSUMERS):
        c = consumers[i] if i < len(consumers) else None
        values[f"CONS{i + 1}"] = _tagged("Потребитель", c and (c.full_name or c.name or c.position))

    steps = step_nodes(state)
    for i in range(MAX_STEPS):
        node = steps[i] if i < len(steps) else None
        values[f"STEP{i + 1}"]        = node.label if node else ""
        values[f"STEP{i + 1}_DETAIL"] = (node.details or "") if node else ""
    return values


def hidden_slots(state: ProcessState) -> Set[str]:
    used = len(step_nodes(state))
    hidden: Set[str] = set()
    for i, node in enumerate(step_nodes(state), start=1):
        if not (node.details or "").strip():
            hidden.add(f"STEP{i}_DETAIL")
    for i in range(used + 1, MAX_STEPS + 1):
        hidden |= {f"STEP{i}", f"STEP{i}_DETAIL"}
    return hidden


def _attr(tag: str, name: str):
    m = re.search(rf'\s{name}="([^"]*)"', tag)
    return m.group(1) if m else None


def _set_attr(tag: str, name: str, value: str) -> str:
    pattern = re.compile(rf'(\s{name}=")[^"]*(")')
    if pattern.search(tag):
        return pattern.sub(lambda m: m.group(1) + value + m.group(2), tag, count=1)
    return re.sub(r"(/?>)$", lambda m: f' {name}="{value}"{m.group(1)}', tag, count=1)


def _set_opacity(tag: str, hide: bool) -> str:
    style = _OPACITY_RE.sub("", _attr(tag, "style") or "")
    if hide:
        if style and not style.endswith(";"):
            style += ";"
        style += "opacity=0;"
    return _set_attr(tag, "style", style)


# ── public API ───────────────────────────────────────────────────────────
def render_diagram(state: ProcessState | None, template: str | None = None) -> str:
    """
    Substitute *state* into *template* (or the state's own raw source, or the
    built-in TEMPLATE). Source that is not well-formed XML is returned as is.
    """
    state  = state or ProcessState()
    source = template or state.raw_diagram_source or TEMPLATE
    try:
        ET.fromstring(source)
    except ET.ParseError:
        log.warning("Diagram source is not well-formed; returned unchanged")
        return source

    values  = {k: wrap_label(v) for k, v in slot_values(state).items()}
    hidden  = hidden_slots(state)
    toggled = {f"STEP{i}" for i in range(1, MAX_STEPS + 1)} | {
        f"STEP{i}_DETAIL" for i in range(1, MAX_STEPS + 1)}

    def _rewrite(m: re.Match) -> str:
        tag = m.group(0)
        cid = _attr(tag, "id")
        if cid in values:
            tag = _set_attr(tag, "value", values[cid])
        if cid in toggled:
            tag = _set_opacity(tag, cid in hidden)
        elif _attr(tag, "edge") == "1":
            ends = {_attr(tag, "source"), _attr(tag, "target")}
            if ends & toggled:
                tag = _set_opacity(tag, bool(ends & hidden))
        return tag

    return _CELL_TAG_RE.sub(_rewrite, source)


class DrawioRender(Runnable):
    """Runnable wrapper so the renderer composes with other LCEL steps."""

    def __init__(self, template: str | None = None):
        self.template = template

    # ── Runnable.invoke ──────────────────────────────────────────────────
    def invoke(self, input, config=None, **_) -> str:
        state = input if isinstance(input, ProcessState) else ProcessState.model_validate(input or {})
        return render_diagram(state, self.template)

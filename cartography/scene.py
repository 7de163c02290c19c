"""
Retained-mode drawing surface for the map.

The surface is a small element tree shaped like the SVG/HTML it serialises to.
Components own disjoint parts of it: the compositor owns the layer groups under
the SVG root, the encoding controller owns the legend and the tract fills, and
the interaction layer owns the tooltip.
"""

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from html import escape
from typing import Any, Dict, Iterator, List, Optional

SVG_NS = "http://www.w3.org/2000/svg"


@dataclass(eq=False)
class Element:
    """One node of the drawing surface."""

    tag: str
    attrs: Dict[str, Any] = field(default_factory=dict)
    style: Dict[str, Any] = field(default_factory=dict)
    children: List["Element"] = field(default_factory=list)
    text: Optional[str] = None
    datum: Any = None
    # Raw markup rendered after the text; used for tooltip and legend content
    html: Optional[str] = None

    def append(self, tag: str, **attrs: Any) -> "Element":
        child = Element(tag, attrs={k.rstrip("_").replace("_", "-"): v for k, v in attrs.items()})
        self.children.append(child)
        return child

    def clear(self) -> None:
        self.children.clear()
        self.text = None
        self.html = None

    @property
    def classes(self) -> List[str]:
        return str(self.attrs.get("class", "")).split()

    @property
    def hidden(self) -> bool:
        return self.style.get("display") == "none"

    def iter(self) -> Iterator["Element"]:
        """Depth-first iteration over this element and its descendants."""
        yield self
        for child in self.children:
            yield from child.iter()

    def select_all(self, class_name: str) -> List["Element"]:
        return [el for el in self.iter() if class_name in el.classes]

    def find(self, element_id: str) -> Optional["Element"]:
        for el in self.iter():
            if el.attrs.get("id") == element_id:
                return el
        return None

    def _style_string(self) -> str:
        return "; ".join(f"{k}: {v}" for k, v in self.style.items() if v is not None)

    def to_etree(self) -> ET.Element:
        node = ET.Element(self.tag, {k: str(v) for k, v in self.attrs.items() if v is not None})
        style = self._style_string()
        if style:
            node.set("style", style)
        if self.text is not None:
            node.text = self.text
        for child in self.children:
            node.append(child.to_etree())
        return node

    def to_markup(self) -> str:
        """Serialise to markup; raw html content is inserted unescaped."""
        attrs = {k: v for k, v in self.attrs.items() if v is not None}
        style = self._style_string()
        if style:
            attrs["style"] = style
        attr_text = "".join(f' {k}="{escape(str(v))}"' for k, v in attrs.items())
        inner = escape(self.text) if self.text is not None else ""
        inner += self.html or ""
        inner += "".join(child.to_markup() for child in self.children)
        return f"<{self.tag}{attr_text}>{inner}</{self.tag}>"


class Surface:
    """Fixed-size SVG drawing surface that counts the paths drawn on it."""

    def __init__(self, width: int, height: int, element_id: str = "transit-map"):
        self.width = width
        self.height = height
        self.root = Element(
            "svg",
            attrs={
                "id": element_id,
                "xmlns": SVG_NS,
                "width": width,
                "height": height,
                "viewBox": f"0 0 {width} {height}",
            },
        )
        self.draw_calls = 0

    def path(self, parent: Element, d: str, datum: Any = None, **attrs: Any) -> Element:
        """Draw one path element under a parent group."""
        el = parent.append("path", **attrs)
        el.attrs["d"] = d
        el.datum = datum
        self.draw_calls += 1
        return el

    def clear(self) -> None:
        self.root.clear()

    def to_svg(self) -> str:
        return ET.tostring(self.root.to_etree(), encoding="unicode")


class MapContainer:
    """
    Page region holding the map surface, its legend and the shared tooltip.

    On a load failure the whole container content is replaced by a single
    error message and nothing else is shown.
    """

    def __init__(self, width: int, height: int):
        self.surface = Surface(width, height)
        self.legend = Element("div", attrs={"id": "legend"})
        self.tooltip = Element("div", attrs={"id": "tooltip"}, style={"opacity": 0})
        self.error_message: Optional[str] = None

    def show_error(self, message: str) -> None:
        self.surface.clear()
        self.legend.clear()
        self.tooltip.clear()
        self.error_message = message

    def to_html(self, title: str = "Transit Density Map", controls: str = "") -> str:
        """Render a standalone HTML page for the current container state."""
        if self.error_message is not None:
            body = (
                f'<div id="map-container"><p style="color: red;"><strong>Error:</strong> '
                f"{escape(self.error_message)}</p></div>"
            )
        else:
            body = (
                f'<div id="map-container">{controls}'
                f"{self.surface.root.to_markup()}"
                f"{self.legend.to_markup()}</div>"
                f"{self.tooltip.to_markup()}"
            )
        return (
            "<!DOCTYPE html>\n<html>\n<head>\n"
            f'<meta charset="utf-8">\n<title>{escape(title)}</title>\n'
            f"<style>{PAGE_CSS}</style>\n"
            f"</head>\n<body>\n{body}\n</body>\n</html>\n"
        )


PAGE_CSS = """
body { font-family: Arial, sans-serif; }
.tract-fill { transition: fill 300ms ease-in-out; stroke: #fff; stroke-width: 0.25px; }
.transit-line-generated { fill: none; }
#legend { display: flex; flex-direction: column; margin-top: 8px; }
.legend-title { font-weight: bold; margin-bottom: 4px; }
.legend-item { display: flex; flex-direction: column; align-items: center; margin-right: 4px; }
.legend-color { width: 40px; height: 12px; }
.legend-label { font-size: 11px; }
#tooltip { position: absolute; pointer-events: none; background: white; border: 1px solid #333;
           border-radius: 4px; padding: 6px; font-size: 12px; }
"""

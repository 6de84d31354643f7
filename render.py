import random
from typing import Any, Dict, List, Tuple
from models import Bin

def _color(weight: Any) -> str:
    rng = random.Random(str(weight))
    r = rng.randint(40, 200)
    g = rng.randint(40, 200)
    b = rng.randint(40, 200)
    return f"rgb({r},{g},{b})"

def render_result(bins: List[Bin], capacity: Any) -> Tuple[str, str]:
    """Bins as vertical bars filled bottom-up with their items."""
    palette: Dict[str, str] = {}
    for b in bins:
        for w in b.items:
            palette.setdefault(str(w), _color(w))

    bar_w = 40
    gap = 12
    bar_h = 300
    scale = bar_h / float(capacity) if capacity else 0.0
    svg_w = len(bins) * (bar_w + gap) + gap
    svg_h = bar_h + 40

    rects = []
    for idx, b in enumerate(bins):
        x = gap + idx * (bar_w + gap)
        rects.append(
            f'<rect x="{x}" y="10" width="{bar_w}" height="{bar_h}" fill="none" stroke="black" stroke-width="1"/>'
        )
        y = 10 + bar_h
        for w in b.items:
            h = float(w) * scale
            y -= h
            rects.append(
                f'<rect x="{x}" y="{y:.2f}" width="{bar_w}" height="{h:.2f}" fill="{palette[str(w)]}" stroke="black" stroke-width="1"/>'
                f'<text x="{x + 4}" y="{y + min(h, 14) - 2:.2f}" font-size="11" fill="black">{w}</text>'
            )
        rects.append(
            f'<text x="{x + 4}" y="{bar_h + 28}" font-size="11" fill="black">#{idx + 1}</text>'
        )
    svg = (
        f'<svg class="bins-svg" xmlns="http://www.w3.org/2000/svg" '
        f'width="{svg_w}" height="{svg_h}" '
        f'viewBox="0 0 {svg_w} {svg_h}" preserveAspectRatio="xMinYMin meet">'
        f'{"".join(rects)}</svg>'
    )

    legend = "".join(f"<li><span class='swatch' style='background:{c}'></span>{n}</li>" for n, c in palette.items())
    return svg, legend

"""
Shared fixtures: small on-disk layout exports.
"""

from __future__ import annotations

from pathlib import Path

import pytest


COVER_HTML = """<html><body>
<p class="Omslag_kop">Licht in de duisternis</p>
<p class="Omslag_ankeiler">Een nieuw jaar</p>
<p class="Colofon">Jaargang 42 &#183; 15 januari 2026</p>
</body></html>
"""

SPREAD_1_HTML = """<html><body>
<p class="Rubriek">Meditatie</p>
<p class="Hoofdkop">Het woord<br/>dat blijft</p>
<p class="Chapeau">Over trouw en genade</p>
<p class="Auteur">Door: Jan Jansen en Piet de Vries</p>
<p class="Platte-tekst">Eerste alinea over Psalm 23:1 en meer.</p>
<img src="../image/foto1.jpg" alt=""/>
<p class="Fotobijschrift">De herder</p>
<p class="Tussenkop">Een tussenkop</p>
<p class="Platte-tekst">Tweede alinea.</p>
<p class="Streamer">Een citaat</p>
</body></html>
"""

SPREAD_2_HTML = """<html><body>
<p class="Hoofdkop">In memoriam</p>
<p class="Chapeau">Ds. K. de Boer (1931-2020)</p>
<p class="Platte-tekst">Een leven in dienst.</p>
<div class="Kader"><p class="Platte-tekst">Kadertekst</p></div>
<p class="Auteur">Jan Jansen.</p>
<img src="../image/logo.png" alt=""/>
</body></html>
"""

SPREAD_3_HTML = """<html><body>
<p class="Platte-tekst">Vervolg.</p>
</body></html>
"""

SAMPLE_SPREADS = {
    "publication.html": COVER_HTML,
    "publication-1.html": SPREAD_1_HTML,
    "publication-2.html": SPREAD_2_HTML,
    "publication-3.html": SPREAD_3_HTML,
}

SAMPLE_IMAGES = {
    "foto1.jpg": b"\xff\xd8\xff\xe0 article photo",
    "logo.png": b"\x89PNG logo",
    "auteurs/jan-jansen.jpg": b"\xff\xd8\xff\xe0 author photo",
}


def write_export(
    root: Path,
    spreads: dict[str, str],
    images: dict[str, bytes] = None,
    wrapper: str = None,
) -> Path:
    """
    Write an export below ``root`` and return the export root.
    ``wrapper`` adds one folder level around the resources directory.
    """
    base = root / wrapper if wrapper else root
    html_dir = base / "publication-web-resources" / "html"
    image_dir = base / "publication-web-resources" / "image"
    html_dir.mkdir(parents=True)
    image_dir.mkdir(parents=True)

    for name, markup in spreads.items():
        (html_dir / name).write_text(markup, encoding="utf-8")
    for relative, data in (images or {}).items():
        path = image_dir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    return root


@pytest.fixture
def sample_export(tmp_path) -> Path:
    """A four-spread export with two articles, two authors and three images."""
    return write_export(tmp_path / "export", SAMPLE_SPREADS, SAMPLE_IMAGES)

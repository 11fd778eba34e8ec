"""
Fixtures partagées.

Aucun test ne touche le réseau : les sondes sont des fonctions factices et les
sessions requests sont des MagicMock.
"""

import pytest

from iptv_catalog import Catalog

SAMPLE = (
    "#EXTM3U\n"
    '#EXTINF:-1 tvg-id="1" group-title="News",CNN\n'
    "http://a/1\n"
    '#EXTINF:-1 group-title="Sports",ESPN\n'
    "http://a/2\n"
)

RICH = """#EXTM3U x-tvg-url="http://epg.example/guide.xml"
#EXTINF:-1 tvg-id="france2.fr" tvg-name="France 2" tvg-logo="http://img/f2.png" tvg-country="FR" tvg-language="French" group-title="Généraliste",France 2 HD
#EXTVLCOPT:http-user-agent=Mozilla/5.0
https://cdn.example/f2/index.m3u8

# commentaire libre
#EXTINF:0 tvg-id="bbc1.uk" catchup="default" catchup-days="7",BBC One
#EXTGRP:UK
http://uk.example/bbc1.ts
#EXTINF:-1 tvg-name="Say \\"Hi\\"" radio="true",Radio Hi
acestream://abcdef0123
"""


@pytest.fixture
def sample_text() -> str:
    return SAMPLE


@pytest.fixture
def rich_text() -> str:
    return RICH


@pytest.fixture
def catalog(sample_text) -> Catalog:
    return Catalog.from_text(sample_text)

from typing import List

from ..models.pattern import Color

# Minimal built-in thread samples; full libraries are loaded by the caller.
_THREADS = {
    "DMC": [
        ("310", "Black", (0, 0, 0)),
        ("321", "Red", (199, 43, 59)),
        ("699", "Green", (0, 92, 9)),
        ("797", "Royal Blue", (19, 71, 125)),
        ("B5200", "Snow White", (255, 255, 255)),
        ("444", "Dark Lemon", (255, 214, 0)),
    ],
    "Anchor": [
        ("403", "Black", (0, 0, 0)),
        ("2", "White", (255, 255, 255)),
    ],
}


def load_palette(brand: str = "DMC") -> List[Color]:
    threads = _THREADS.get(brand) or _THREADS["DMC"]
    brand = brand if brand in _THREADS else "DMC"
    return [
        Color(
            id=f"{brand.lower()}-{code}",
            name=name,
            rgb=rgb,
            threadBrand=brand,
            threadCode=code,
        )
        for code, name, rgb in threads
    ]

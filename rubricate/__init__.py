from importlib import metadata
from pathlib import Path

here = Path(__file__).parent
if (here.parent / "VERSION.txt").exists():
    with open(here.parent / "VERSION.txt", "r") as vf:
        __version__ = vf.read().strip()
else:
    __version__ = metadata.version("rubricate")

import os
import sys
from datetime import date

sys.path.insert(0, os.path.abspath("../.."))

import linkwatch  # noqa: E402

project = "linkwatch"
author = "linkwatch contributors"
copyright = f"{date.today().year}, linkwatch contributors"

version = linkwatch.__version__
release = linkwatch.__version__

extensions = [
    "myst_parser",
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
]

exclude_patterns: list[str] = []
source_suffix = [".rst", ".md"]
master_doc = "index"
language = "en"

autodoc_member_order = "bysource"

html_theme = "sphinx_book_theme"
html_title = f"linkwatch {version} documentation"
html_theme_options = {
    "show_toc_level": 2,
}

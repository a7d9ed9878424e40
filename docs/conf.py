# Configuration file for the Sphinx documentation builder.
project = 'cmcontroller'
copyright = '2026, cmcontroller'
author = 'cmcontroller'
release = '0.12.0'

extensions = ['sphinx.ext.autodoc']

templates_path = ['_templates']
exclude_patterns = ['_build', 'Thumbs.db', '.DS_Store']

autodoc_member_order = 'bysource'

html_theme = 'sphinx_rtd_theme'
html_static_path = ['_static']

# Configuration file for the Sphinx documentation builder.
#
# For the full list of built-in configuration values, see the documentation:
# https://www.sphinx-doc.org/en/master/usage/configuration.html

# -- Path setup --------------------------------------------------------------
import os
import sys
sys.path.insert(0, os.path.abspath('../../src'))
# Compiled or heavy dependencies not available on RTD
autodoc_mock_imports = ['heyoka', 'plotly']

# -- Project information -----------------------------------------------------

project = 'Metabole'
copyright = '2026, Shane Billingsley'
author = 'Shane Billingsley'
release = '0.1.0'

# -- General configuration ---------------------------------------------------

extensions = [
    'sphinx.ext.autodoc',      # API pages from docstrings
    'sphinx.ext.napoleon',     # NumPy-style docstrings
    'sphinx.ext.autosummary',
    'sphinx.ext.mathjax',      # Variational equations in module docs
    'sphinx.ext.intersphinx',
    'sphinx.ext.viewcode',
    'myst_parser',
]

autosummary_generate = True
autodoc_member_order = 'bysource'
napoleon_numpy_docstring = True
napoleon_google_docstring = True  # trajectory.py uses Google-style sections

intersphinx_mapping = {
    'numpy': ('https://numpy.org/doc/stable/', None),
    'scipy': ('https://docs.scipy.org/doc/scipy/', None),
    'pandas': ('https://pandas.pydata.org/docs/', None),
}

templates_path = ['_templates']
exclude_patterns = []

# -- Options for HTML output -------------------------------------------------

html_theme = 'sphinx_rtd_theme'
html_static_path = ['_static']

"""
Edition Parser
==============
Extraction pipeline that turns a page-layout (XHTML) export of a printed
edition into articles, authors and presentation-ready content blocks.

Architecture:
    - Export Loader: Enumerates spread files, indexes images, reads metadata
    - Style Classifier: Maps markup class names to semantic roles
    - Article Segmenter: Groups classified elements into articles
    - Author Extractor: Parses, normalizes and persists author names
    - Content Block Transformer: Serves stored articles as ordered blocks

Version: 1.0.0
"""

__version__ = "1.0.0"

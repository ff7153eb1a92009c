"""
CertiCV Extraction
===================

Turns submitted bytes into text and text into structured claims.

Components:
    - document.py:  Media-type dispatch, decoding, content digest
    - entities.py:  Pattern-based extraction of institutions, degrees,
                    employers, skills, certifications and date ranges
"""

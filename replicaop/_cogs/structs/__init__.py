"""
Data structures for the objects, references, and credentials.

All of them are purely declarative: no external calls or i/o are done here.
"""

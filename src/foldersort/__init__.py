"""
Rule-based folder organizer.

Moves the files of a folder into subfolders according to an ordered list of
extension and name-prefix rules, once or continuously while the folder is
being watched.
"""

__version__ = "1.0.0"

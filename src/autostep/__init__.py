"""
AutoStep command line.

Builds and runs AutoStep test projects: resolves project configuration,
loads extensions, compiles and links the project's test and interaction
files, and executes the linked tests.
"""

__version__ = "1.0.0"

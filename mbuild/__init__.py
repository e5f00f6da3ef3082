"""mbuild - árvore de módulos multiplataforma"""

__version__ = "1.0.0"

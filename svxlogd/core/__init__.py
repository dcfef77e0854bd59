"""Pacote core: orquestração principal do daemon.

Contém o controlador (máquina de estados), o loop principal e o parsing de
argumentos.

Re-exports para importações curtas.
"""

from .core import Controller, State, run_loop

__all__ = ["Controller", "State", "run_loop"]

import logging
import os
import threading
from datetime import datetime
from logging.handlers import RotatingFileHandler

from mbuild.modules import config

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

LOG_FILE = "mbuild.log"

_root_logger = logging.getLogger("mbuild")
_root_logger.setLevel(logging.DEBUG)


class ColorFormatter(logging.Formatter):
    """
    Console colorido: [hora] nível[componente] mensagem.
    Mensagens emitidas pelos workers do batch update levam o nome da thread.
    """
    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }
    RESET = "\033[0m"

    def format(self, record):
        color = self.COLORS.get(record.levelno, self.RESET)
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        component = record.name[len("mbuild."):] if record.name.startswith("mbuild.") else ""
        if record.threadName != threading.main_thread().name:
            component = f"{component}@{record.threadName}" if component else record.threadName
        tag = f"[{component}]" if component else ""
        return f"{color}[{ts}] {record.levelname.lower():<7}{tag}{self.RESET} {super().format(record)}"


def setup(log_to_file: bool = True, verbose: bool = False):
    """
    Instala os handlers (console e arquivo rotativo em log_dir).
    Chamado pela CLI; usar o mbuild como biblioteca não instala handlers.
    """
    if _root_logger.handlers:
        set_level("debug" if verbose else "info")
        return

    console = logging.StreamHandler()
    console.setFormatter(ColorFormatter("%(message)s"))
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    _root_logger.addHandler(console)

    if not log_to_file:
        return
    log_dir = config.get_path("log_dir")
    try:
        os.makedirs(log_dir, exist_ok=True)
    except OSError as e:
        _root_logger.warning("Sem log em arquivo, %s inacessível: %s", log_dir, e)
        return
    fh = RotatingFileHandler(os.path.join(log_dir, LOG_FILE), maxBytes=5 * 1024 * 1024, backupCount=3)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s",
        "%Y-%m-%d %H:%M:%S",
    ))
    _root_logger.addHandler(fh)


def get_logger(name: str = "mbuild"):
    """Sub-logger de um componente (ex.: get_logger("tree") -> mbuild.tree)"""
    if name == "mbuild":
        return _root_logger
    return _root_logger.getChild(name)


def set_level(level: str):
    """Nível do console; o arquivo registra sempre em debug"""
    lvl = LEVELS.get(level.lower())
    if lvl is None:
        raise ValueError(f"Nível inválido: {level}")
    for handler in _root_logger.handlers:
        if not isinstance(handler, RotatingFileHandler):
            handler.setLevel(lvl)


def debug(msg, *args, **kwargs): _root_logger.debug(msg, *args, **kwargs)
def info(msg, *args, **kwargs): _root_logger.info(msg, *args, **kwargs)

from .bind import bind
from .build import build
from .clean import clean
from .config import config
from .doctor import doctor
from .fetch import fetch
from .init import init
from .log import log
from .version import version

__all__ = ["bind", "build", "clean", "config", "doctor", "fetch", "init", "log", "version"]

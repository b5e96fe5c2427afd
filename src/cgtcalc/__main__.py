from .cli import init

init()

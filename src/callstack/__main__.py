from callstack.cli import entrypoint

entrypoint()

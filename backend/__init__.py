# file: backend/__init__.py

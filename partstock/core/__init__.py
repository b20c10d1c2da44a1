# partstock/core/__init__.py

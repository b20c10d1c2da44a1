# partstock/domains/__init__.py
